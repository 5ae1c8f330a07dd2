"""In-process provider cache with optimistic inserts.

One entry per scope.  Views subscribe to a scope and are notified whenever
its provider list changes: after a load, after an optimistic insert, and
after an invalidation.  Rows inserted optimistically carry a ``TempId``
until the backend assigns a real id.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from gestock.scope import Scope
from gestock.store import Row
from gestock.utils.ids import TempId, is_temp_id

logger = logging.getLogger(__name__)

Listener = Callable[[Scope, list[Row]], Awaitable[None] | None]
Loader = Callable[[Scope], Awaitable[list[Row]]]


class ProviderCache:
    def __init__(self) -> None:
        self._rows: dict[Scope, list[Row]] = {}
        self._listeners: dict[Scope, list[Listener]] = {}

    def __contains__(self, scope: Scope) -> bool:
        return scope in self._rows

    def get(self, scope: Scope) -> list[Row] | None:
        rows = self._rows.get(scope)
        return None if rows is None else [dict(row) for row in rows]

    def subscribe(self, scope: Scope, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` for changes to ``scope``. Returns an unsubscribe function."""
        self._listeners.setdefault(scope, []).append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(scope, [])
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    async def _notify(self, scope: Scope) -> None:
        rows = self.get(scope) or []
        for callback in list(self._listeners.get(scope, [])):
            result = callback(scope, rows)
            if asyncio.iscoroutine(result):
                await result

    async def load(self, scope: Scope, loader: Loader) -> list[Row]:
        """Return cached rows for ``scope``, calling ``loader`` on a miss."""
        if scope not in self._rows:
            self._rows[scope] = [dict(row) for row in await loader(scope)]
            logger.debug(f"Provider cache filled for {scope}: {len(self._rows[scope])} rows")
            await self._notify(scope)
        return self.get(scope) or []

    async def invalidate(self, scope: Scope) -> None:
        """Drop the entry for ``scope`` only; other scopes are untouched."""
        if self._rows.pop(scope, None) is not None:
            logger.debug(f"Provider cache invalidated for {scope}")
        await self._notify(scope)

    # ── Optimistic inserts ──────────────────────────────────

    async def add_pending(self, scope: Scope, row: dict[str, Any]) -> TempId:
        temp_id = TempId.next()
        self._rows.setdefault(scope, []).append({**row, "id": temp_id})
        await self._notify(scope)
        return temp_id

    async def promote(self, scope: Scope, temp_id: str, row: Row) -> None:
        """Replace the pending row ``temp_id`` with the persisted ``row``."""
        if is_temp_id(row.get("id")):
            raise ValueError(f"Cannot promote {temp_id} to another temporary id")
        rows = self._rows.setdefault(scope, [])
        for index, existing in enumerate(rows):
            if existing.get("id") == temp_id:
                rows[index] = dict(row)
                break
        else:
            rows.append(dict(row))
        await self._notify(scope)

    async def discard(self, scope: Scope, temp_id: str) -> None:
        """Roll back a pending insert that failed to persist."""
        rows = self._rows.get(scope)
        if rows is None:
            return
        self._rows[scope] = [row for row in rows if row.get("id") != temp_id]
        await self._notify(scope)


provider_cache = ProviderCache()
