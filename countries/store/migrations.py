"""SQLite schema migrations for the persistent store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from countries.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 1


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
    """

    version: int
    description: str
    up_sql: str


# All migrations in order
MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Initial schema with countries table",
        up_sql="""
CREATE TABLE IF NOT EXISTS countries (
    alpha3_code TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    population INTEGER NOT NULL,
    flag_url TEXT,
    translations_json TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_countries_name ON countries(name);
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Applies pending SQLite schema migrations."""

    # SQL for schema version tracking table
    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()
        row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration fails; it is rolled back.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)
        applied: list[int] = []

        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                self._log.error(
                    "migration_failed",
                    version=migration.version,
                    error=str(e),
                )
                raise MigrationError(migration.version, str(e)) from e
            applied.append(migration.version)

        self._log.info(
            "migrations_complete",
            old_version=current,
            new_version=CURRENT_VERSION,
            applied=applied,
        )
        return applied
