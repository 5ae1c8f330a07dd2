"""Scoped provider routes: cached listing and optimistic create."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from gestock.config import settings
from gestock.deps import get_provider_cache, get_scope, get_store
from gestock.scope import Scope
from gestock.services.provider_cache import ProviderCache
from gestock.services.providers import ProviderCreate, create_provider, list_providers
from gestock.store import ScopeStore
from gestock.utils.cache import cached


class ProviderOut(BaseModel):
    id: str
    name: str
    frequency: str | None = None
    order_day: int | None = None
    receive_day: int | None = None
    responsible: str | None = None
    status: str | None = None
    payment_method: str | None = None


router = APIRouter()


@router.get("/providers", response_model=list[ProviderOut])
@cached(ttl=settings.provider_cache_ttl, prefix="providers")
async def list_providers_route(
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
    cache: ProviderCache = Depends(get_provider_cache),
):
    rows = await list_providers(store, scope, cache)
    return [ProviderOut.model_validate(row) for row in rows]


@router.post("/providers", response_model=ProviderOut, status_code=status.HTTP_201_CREATED)
async def create_provider_route(
    body: ProviderCreate,
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
    cache: ProviderCache = Depends(get_provider_cache),
):
    row = await create_provider(store, scope, body, cache)
    return ProviderOut.model_validate(row)
