"""Store versioning: model name and database file location."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path


APP_DIRECTORY_NAME = "countries"
CURRENT_STORE_VERSION = 1


def default_data_directory() -> Path:
    """Get the per-user data directory for the application.

    Returns:
        Platform data directory joined with the application name.
    """
    if sys.platform == "win32":
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        base = os.environ.get("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_DIRECTORY_NAME


@dataclass(frozen=True)
class StoreVersion:
    """Maps a store version number to its model name and file name.

    Every version currently maps to the same model and file.
    """

    number: int = CURRENT_STORE_VERSION

    @property
    def model_name(self) -> str:
        """Get the data model name."""
        return "db_model_v1"

    @property
    def file_name(self) -> str:
        """Get the database file name."""
        return "db.sql"

    def db_file_path(self, directory: Path | None = None) -> Path:
        """Get the database file path.

        Args:
            directory: Base directory (defaults to the per-user data directory).

        Returns:
            Path of the database file.
        """
        return (directory or default_data_directory()) / self.file_name
