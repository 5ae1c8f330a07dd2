"""The Scope Store: a remote table store the snapshot engine reads and writes.

Filters are plain mappings of column -> value:
    None              → column IS NULL
    list/tuple/set    → column IN (...)
    anything else     → column = value
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

Row = dict[str, Any]
Filters = Mapping[str, Any]


class StoreError(Exception):
    """A backend call failed."""

    def __init__(self, table: str, message: str):
        self.table = table
        self.message = message
        super().__init__(f"{table}: {message}")


class MissingTableError(StoreError):
    """The table does not exist in this backend. Callers treat it as empty."""

    def __init__(self, table: str):
        super().__init__(table, "table does not exist")


_MISSING_TABLE_MARKERS = ("42P01", "PGRST205", "could not find the table")


def looks_like_missing_table(message: str) -> bool:
    lowered = message.lower()
    if "relation" in lowered and "does not exist" in lowered:
        return True
    return any(marker.lower() in lowered for marker in _MISSING_TABLE_MARKERS)


class ScopeStore(Protocol):
    async def select(self, table: str, filters: Filters) -> list[Row]: ...

    async def upsert(self, table: str, rows: list[Row], conflict_key: Iterable[str]) -> None: ...

    async def delete(self, table: str, filters: Filters) -> None: ...
