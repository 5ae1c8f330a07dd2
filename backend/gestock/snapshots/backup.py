"""Backup Store: one saved snapshot per scope, kept in app_settings.

The slot row is tenant-level (branch_id NULL) so branch cleanup and branch
export never see it.  Its updated_at doubles as "last backup time".
"""

import logging
from datetime import datetime

from pydantic import BaseModel

from gestock.middleware.exceptions import GeStockException
from gestock.schemas.snapshot import parse_snapshot
from gestock.scope import Scope
from gestock.snapshots.applier import ApplyReport, apply_snapshot
from gestock.snapshots.builder import build_snapshot, select_or_empty
from gestock.snapshots.cleaner import clean_scope
from gestock.snapshots.keys import backup_slot_key
from gestock.snapshots.reconciler import reconcile_snapshot
from gestock.snapshots.tables import APP_SETTINGS
from gestock.store import ScopeStore, StoreError
from gestock.utils.locks import scope_write_lock

logger = logging.getLogger(__name__)


class BackupResult(BaseModel):
    ok: bool
    message: str
    saved_at: datetime | None = None


class BackupStatus(BaseModel):
    slot_key: str
    exists: bool
    saved_at: datetime | None = None


class BackupStore:
    def __init__(self, store: ScopeStore):
        self.store = store

    async def _read_slot(self, scope: Scope) -> dict | None:
        rows = await select_or_empty(
            self.store, APP_SETTINGS.name, {"key": backup_slot_key(scope)}
        )
        return rows[0] if rows else None

    async def status(self, scope: Scope) -> BackupStatus:
        row = await self._read_slot(scope)
        return BackupStatus(
            slot_key=backup_slot_key(scope),
            exists=row is not None,
            saved_at=row.get("updated_at") if row else None,
        )

    async def save(self, scope: Scope) -> BackupResult:
        try:
            document = await build_snapshot(self.store, scope, source=f"backup {scope.label}")
            saved_at = datetime.utcnow()
            await self.store.upsert(
                APP_SETTINGS.name,
                [{
                    "key": backup_slot_key(scope),
                    "tenant_id": scope.tenant_id,
                    "branch_id": None,
                    "value": document.to_dict(),
                    "updated_at": saved_at,
                }],
                APP_SETTINGS.conflict_key,
            )
        except (GeStockException, StoreError) as exc:
            logger.warning(f"Backup of {scope} failed: {exc}")
            return BackupResult(ok=False, message=f"Backup failed: {exc}")

        logger.info(f"Saved backup of {scope}")
        return BackupResult(ok=True, message="Backup saved", saved_at=saved_at)

    async def restore(self, scope: Scope) -> BackupResult:
        async with scope_write_lock(scope):
            try:
                row = await self._read_slot(scope)
                if row is None:
                    return BackupResult(ok=False, message="No backup for this scope")
                document = parse_snapshot(row["value"])
                reconciled = await reconcile_snapshot(self.store, document, scope)
                cleanup = await clean_scope(self.store, scope)
                applied, written = await apply_snapshot(self.store, reconciled)
            except (GeStockException, StoreError) as exc:
                logger.warning(f"Restore of {scope} failed: {exc}")
                return BackupResult(ok=False, message=f"Restore failed: {exc}")

        report = ApplyReport.from_diagnostics(
            cleanup + reconciled.diagnostics + applied, written
        )
        if not report.ok:
            logger.warning(f"Restore of {scope} completed with errors:\n{report.report}")
            return BackupResult(
                ok=False,
                message=f"Restore completed with {len(report.diagnostics)} errors",
                saved_at=row.get("updated_at"),
            )
        return BackupResult(ok=True, message="Backup restored", saved_at=row.get("updated_at"))
