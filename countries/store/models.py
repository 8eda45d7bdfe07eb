"""Data models for the persistent store."""

from collections.abc import Callable, Iterator, Sequence
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")
V = TypeVar("V")


class FetchRequest(BaseModel):
    """A SELECT statement with its bound parameters.

    Used as-is by ``fetch`` and wrapped in ``SELECT COUNT(*)`` by ``count``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sql: Annotated[str, Field(min_length=1, description="SELECT statement")]
    params: tuple[Any, ...] = Field(default=(), description="Bound parameters")

    def count_sql(self) -> str:
        """Get a statement counting the rows this request returns."""
        return f"SELECT COUNT(*) FROM ({self.sql})"  # noqa: S608


class LazyList(Generic[T, V]):
    """Read-only view over fetched rows, mapped on access.

    ``map_row`` runs when an element is first read. Rows it maps to None are
    skipped during iteration. With ``use_cache`` each row is mapped at
    most once.
    """

    def __init__(
        self,
        rows: Sequence[T],
        map_row: Callable[[T], V | None],
        use_cache: bool = True,
    ) -> None:
        """Initialize the list.

        Args:
            rows: Raw rows returned by the query.
            map_row: Conversion applied per row.
            use_cache: Memoize mapped values.
        """
        self._rows = rows
        self._map = map_row
        self._use_cache = use_cache
        self._cache: dict[int, V | None] = {}

    @property
    def raw_count(self) -> int:
        """Get the number of fetched rows, including ones mapped to None."""
        return len(self._rows)

    def __getitem__(self, index: int) -> V | None:
        if index < 0:
            index += len(self._rows)
        if not 0 <= index < len(self._rows):
            msg = f"LazyList index {index} out of range"
            raise IndexError(msg)
        if self._use_cache and index in self._cache:
            return self._cache[index]
        value = self._map(self._rows[index])
        if self._use_cache:
            self._cache[index] = value
        return value

    def __iter__(self) -> Iterator[V]:
        for index in range(len(self._rows)):
            value = self[index]
            if value is not None:
                yield value

    def to_list(self) -> list[V]:
        """Map every row and drop the ones mapped to None."""
        return list(self)

