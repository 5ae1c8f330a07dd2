"""Provider listing and creation for one scope.

Listings are served from the in-process ProviderCache (filled from the
store on first use) and, at the HTTP edge, from Redis through ``cached``.
Creation inserts optimistically under a temporary id, persists, then
swaps in the real row.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from gestock.schemas.rows import strip_branch_suffix
from gestock.scope import Scope
from gestock.services.provider_cache import ProviderCache
from gestock.snapshots.builder import select_or_empty
from gestock.snapshots.tables import PROVIDERS
from gestock.store import Row, ScopeStore, StoreError
from gestock.utils.cache import invalidate_cache
from gestock.utils.ids import new_id

logger = logging.getLogger(__name__)


class ProviderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    frequency: str | None = None
    order_day: int | None = Field(default=None, ge=0, le=6)
    receive_day: int | None = Field(default=None, ge=0, le=6)
    responsible: str | None = None
    status: str | None = "active"
    payment_method: str | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = strip_branch_suffix(v)
        if not v:
            raise ValueError("provider name must not be blank")
        return v


def _sorted(rows: list[Row]) -> list[Row]:
    return sorted(rows, key=lambda row: (row.get("name") or "").casefold())


async def list_providers(store: ScopeStore, scope: Scope, cache: ProviderCache) -> list[Row]:
    async def loader(s: Scope) -> list[Row]:
        return await select_or_empty(store, PROVIDERS.name, s.filters())

    return _sorted(await cache.load(scope, loader))


async def create_provider(
    store: ScopeStore,
    scope: Scope,
    body: ProviderCreate,
    cache: ProviderCache,
) -> Row:
    """Create a provider, showing it locally before the backend confirms.

    On a store failure the pending row is discarded and the error re-raised.
    """
    fields = body.model_dump()
    temp_id = await cache.add_pending(scope, fields)

    now = datetime.utcnow()
    row = {
        **fields,
        "id": new_id(),
        "tenant_id": scope.tenant_id,
        "branch_id": scope.branch_id,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await store.upsert(PROVIDERS.name, [row], PROVIDERS.conflict_key)
    except StoreError:
        await cache.discard(scope, temp_id)
        raise

    await cache.promote(scope, temp_id, row)
    await invalidate_cache("providers:*", scope=scope)
    logger.info(f"Created provider {row['id']} ({row['name']}) in {scope}")
    return row
