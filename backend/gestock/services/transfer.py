"""Import / copy orchestration.

    import:  parse → [clean destination] → reconcile → apply
    copy:    build source → [backup source] → clean destination → reconcile → apply

Parse errors and "no providers to export" are raised before anything is
written.  Everything after that is best-effort and ends in an ApplyReport
whose status is success or completed_with_errors.

A successful apply into the caller's own scope invalidates that scope's
provider cache; copies into other scopes leave the local cache alone.
"""

import logging
from typing import Any

from gestock.schemas.snapshot import parse_snapshot
from gestock.scope import Scope
from gestock.services.provider_cache import ProviderCache
from gestock.snapshots.applier import ApplyReport, apply_snapshot
from gestock.snapshots.backup import BackupStore
from gestock.snapshots.builder import build_snapshot
from gestock.snapshots.cleaner import clean_scope
from gestock.snapshots.reconciler import reconcile_snapshot
from gestock.store import ScopeStore
from gestock.utils.cache import invalidate_cache
from gestock.utils.locks import scope_write_lock

logger = logging.getLogger(__name__)


async def _after_apply(
    destination: Scope,
    local_scope: Scope | None,
    cache: ProviderCache | None,
) -> None:
    await invalidate_cache("providers:*", scope=destination)
    if cache is not None and destination == local_scope:
        await cache.invalidate(destination)


async def import_snapshot(
    store: ScopeStore,
    raw: str | bytes | dict[str, Any],
    destination: Scope,
    replace: bool = True,
    *,
    local_scope: Scope | None = None,
    cache: ProviderCache | None = None,
    chunk_size: int | None = None,
) -> ApplyReport:
    """Apply a snapshot document onto ``destination``.

    ``replace=True`` purges the destination first, so re-importing the same
    document leaves identical row counts.  ``replace=False`` merges:
    providers and weeks are matched by natural key, orders are always new.
    """
    document = parse_snapshot(raw)

    async with scope_write_lock(destination):
        cleanup = await clean_scope(store, destination) if replace else []
        reconciled = await reconcile_snapshot(store, document, destination)
        applied, written = await apply_snapshot(store, reconciled, chunk_size)

    report = ApplyReport.from_diagnostics(
        cleanup + reconciled.diagnostics + applied, written
    )
    logger.info(
        f"Import into {destination} ({'replace' if replace else 'merge'}): "
        f"{report.status.value}, {sum(written.values())} rows written"
    )
    await _after_apply(destination, local_scope, cache)
    return report


async def copy_scope(
    store: ScopeStore,
    source: Scope,
    destination: Scope,
    backup_source: bool = False,
    *,
    local_scope: Scope | None = None,
    cache: ProviderCache | None = None,
    chunk_size: int | None = None,
) -> ApplyReport:
    """Replace ``destination`` with a copy of ``source``."""
    document = await build_snapshot(store, source)

    diagnostics: list[str] = []
    if backup_source:
        saved = await BackupStore(store).save(source)
        if not saved.ok:
            diagnostics.append(saved.message)

    async with scope_write_lock(destination):
        diagnostics += await clean_scope(store, destination)
        reconciled = await reconcile_snapshot(store, document, destination)
        applied, written = await apply_snapshot(store, reconciled, chunk_size)

    report = ApplyReport.from_diagnostics(
        diagnostics + reconciled.diagnostics + applied, written
    )
    logger.info(
        f"Copy {source} → {destination}: {report.status.value}, "
        f"{sum(written.values())} rows written"
    )
    await _after_apply(destination, local_scope, cache)
    return report
