"""Scoped backup slot routes."""

from fastapi import APIRouter, Depends

from gestock.deps import get_provider_cache, get_scope, get_store
from gestock.middleware.exceptions import BackupNotFoundError
from gestock.scope import Scope
from gestock.services.provider_cache import ProviderCache
from gestock.snapshots.backup import BackupResult, BackupStatus, BackupStore
from gestock.store import ScopeStore
from gestock.utils.cache import invalidate_cache

router = APIRouter()


@router.get("/backup", response_model=BackupStatus)
async def backup_status(
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
):
    return await BackupStore(store).status(scope)


@router.post("/backup", response_model=BackupResult)
async def save_backup(
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
):
    return await BackupStore(store).save(scope)


@router.post("/backup/restore", response_model=BackupResult)
async def restore_backup(
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
    cache: ProviderCache = Depends(get_provider_cache),
):
    backups = BackupStore(store)
    current = await backups.status(scope)
    if not current.exists:
        raise BackupNotFoundError(current.slot_key)

    result = await backups.restore(scope)
    await invalidate_cache("providers:*", scope=scope)
    await cache.invalidate(scope)
    return result
