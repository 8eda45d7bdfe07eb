"""Countries persisted in the local store."""

import json
import sqlite3
from collections.abc import Sequence
from concurrent.futures import Future
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from countries.store.models import FetchRequest, LazyList
from countries.store.store import PersistentStore


class Country(BaseModel):
    """A country as shown in the countries list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    alpha3_code: Annotated[str, Field(min_length=3, max_length=3)]
    name: Annotated[str, Field(min_length=1)]
    population: Annotated[int, Field(ge=0)] = 0
    flag: str | None = Field(default=None, description="Flag image URL")
    translations: dict[str, str] = Field(
        default_factory=dict, description="Country name per locale code"
    )

    def name_for_locale(self, locale: str) -> str:
        """Get the translated name, falling back to the default name."""
        return self.translations.get(locale) or self.name


def country_from_row(row: sqlite3.Row) -> Country | None:
    """Map a ``countries`` row to a Country; None for unusable rows."""
    try:
        translations = json.loads(row["translations_json"] or "{}")
    except json.JSONDecodeError:
        return None
    if not row["name"] or len(row["alpha3_code"] or "") != 3:  # noqa: PLR2004
        return None
    return Country(
        alpha3_code=row["alpha3_code"],
        name=row["name"],
        population=row["population"],
        flag=row["flag_url"],
        translations=translations,
    )


ALL_COUNTRIES = FetchRequest(sql="SELECT alpha3_code FROM countries")

UPSERT_COUNTRY_SQL = """
INSERT INTO countries (alpha3_code, name, population, flag_url, translations_json)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(alpha3_code) DO UPDATE SET
    name = excluded.name,
    population = excluded.population,
    flag_url = excluded.flag_url,
    translations_json = excluded.translations_json
"""


def search_request(search: str, locale: str) -> FetchRequest:
    """Build the query for countries whose name matches ``search``.

    Matches the default name or the ``locale`` translation,
    case-insensitively, ordered by the localized name.
    """
    pattern = f"%{search.strip().lower()}%"
    return FetchRequest(
        sql="""
SELECT alpha3_code, name, population, flag_url, translations_json,
       COALESCE(json_extract(translations_json, '$.' || ?), name) AS local_name
FROM countries
WHERE lower(name) LIKE ?
   OR lower(COALESCE(json_extract(translations_json, '$.' || ?), '')) LIKE ?
ORDER BY local_name COLLATE NOCASE
""",
        params=(locale, pattern, locale, pattern),
    )


class CountriesDbRepository:
    """Reads and writes countries through a ``PersistentStore``."""

    def __init__(self, store: PersistentStore) -> None:
        self._store = store

    def has_loaded_countries(self) -> bool:
        """Check whether any country has been stored."""
        return self._store.count(ALL_COUNTRIES) > 0

    def store(self, countries: Sequence[Country]) -> "Future[int]":
        """Insert or update countries in one write transaction.

        Returns:
            Future resolved with the number of countries written.
        """
        rows = [
            (
                c.alpha3_code,
                c.name,
                c.population,
                c.flag,
                json.dumps(c.translations, sort_keys=True),
            )
            for c in countries
        ]

        def write(conn: sqlite3.Connection) -> int:
            conn.executemany(UPSERT_COUNTRY_SQL, rows)
            return len(rows)

        return self._store.update(write)

    def countries(
        self, search: str, locale: str
    ) -> "Future[LazyList[sqlite3.Row, Country]]":
        """Fetch countries matching ``search``; must run on the main context."""
        return self._store.fetch(search_request(search, locale), country_from_row)
