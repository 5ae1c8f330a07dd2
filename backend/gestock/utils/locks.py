"""Single-writer guard for snapshot operations.

An import, copy or restore owns its destination scope until it finishes.
A second operation against the same scope fails fast instead of
interleaving deletes and upserts.  The guard is per-process; callers that
run several workers must still serialise at the UI.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from gestock.middleware.exceptions import OperationInProgressError
from gestock.scope import Scope

_busy: set[Scope] = set()


def is_busy(scope: Scope) -> bool:
    return scope in _busy


@asynccontextmanager
async def scope_write_lock(scope: Scope) -> AsyncIterator[None]:
    if scope in _busy:
        raise OperationInProgressError(scope.label)
    _busy.add(scope)
    try:
        yield
    finally:
        _busy.discard(scope)
