"""Scoped snapshot routes: export, import and branch-to-branch copy."""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, field_validator

from gestock.deps import get_provider_cache, get_scope, get_store
from gestock.scope import Scope, validate_scope_id
from gestock.services.provider_cache import ProviderCache
from gestock.services.transfer import copy_scope, import_snapshot
from gestock.snapshots.applier import ApplyReport
from gestock.snapshots.builder import build_snapshot
from gestock.store import ScopeStore


# ── Schemas ──────────────────────────────────────────────────

class CopyRequest(BaseModel):
    # "-" or null copies into the tenant-level scope
    destination_branch_id: str | None = None
    backup_source: bool = False

    @field_validator("destination_branch_id")
    @classmethod
    def check_branch(cls, v: str | None) -> str | None:
        if v is None or v == "-":
            return None
        return validate_scope_id(v)


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/snapshot")
async def export_snapshot(
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
):
    """Export every snapshot table of the current scope as one document."""
    document = await build_snapshot(store, scope)
    return document.to_dict()


@router.post("/snapshot/import", response_model=ApplyReport)
async def import_snapshot_route(
    request: Request,
    replace: bool = Query(True),
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
    cache: ProviderCache = Depends(get_provider_cache),
):
    """Apply the request body (a snapshot document) onto the current scope.

    The body is parsed here rather than by FastAPI so malformed documents
    surface as SNAPSHOT_PARSE_ERROR with the offending location.
    """
    raw = await request.body()
    return await import_snapshot(
        store, raw, scope, replace=replace, local_scope=scope, cache=cache,
    )


@router.post("/snapshot/copy", response_model=ApplyReport)
async def copy_snapshot(
    body: CopyRequest,
    scope: Scope = Depends(get_scope),
    store: ScopeStore = Depends(get_store),
    cache: ProviderCache = Depends(get_provider_cache),
):
    destination = Scope(scope.tenant_id, body.destination_branch_id)
    return await copy_scope(
        store,
        scope,
        destination,
        backup_source=body.backup_source,
        local_scope=scope,
        cache=cache,
    )
