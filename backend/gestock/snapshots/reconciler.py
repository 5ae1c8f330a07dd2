"""Scope Reconciler: remaps a snapshot onto a destination scope.

Walks the tables in dependency order (see ``tables.TABLES``) and, for each
row:

    1. drops the configured fields,
    2. resolves foreign keys through the id maps built by earlier tables
       (unresolved → row dropped, diagnostic recorded),
    3. resolves its own id: merged onto an existing destination row by
       natural key, or freshly minted,
    4. forces tenant_id / branch_id to the destination,
    5. collapses duplicates on the table's conflict key
       ("first" wins, or "latest" by updated_at).

Nothing is written here.  The only backend access is the up-front read of
the destination's natural keys.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from gestock.schemas.rows import strip_branch_suffix
from gestock.schemas.snapshot import SnapshotDocument
from gestock.scope import Scope
from gestock.snapshots.tables import TABLES, TableSpec
from gestock.store import MissingTableError, Row, ScopeStore
from gestock.utils.ids import is_temp_id, new_id

logger = logging.getLogger(__name__)


def _timestamp(row: Row) -> datetime:
    """Sort key for last-writer-wins.  A missing timestamp is the oldest."""
    value = row.get("updated_at")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            value = None
    if not isinstance(value, datetime):
        return datetime.min
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _label(field_name: str) -> str:
    return field_name.removesuffix("_id")


def _origin(row: Row) -> Scope | None:
    """The scope a source row was exported from, when it says so."""
    tenant = row.get("tenant_id")
    if not tenant:
        return None
    return Scope(str(tenant), row.get("branch_id") or None)


class IdMap:
    """original id → resolved id, plus resolved → resolved.

    The identity entries make re-resolving an already-resolved id a no-op.
    """

    def __init__(self) -> None:
        self._ids: dict[str, str] = {}

    def bind(self, original: str | None, resolved: str) -> None:
        if original:
            self._ids[original] = resolved
        self._ids[resolved] = resolved

    def resolve(self, value: Any) -> str | None:
        if value is None or is_temp_id(value):
            return None
        return self._ids.get(str(value))

    def __len__(self) -> int:
        return len(self._ids)


@dataclass
class ReconciledSnapshot:
    destination: Scope
    tables: dict[str, list[Row]] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)

    def rows(self, table: str) -> list[Row]:
        return self.tables.get(table, [])

    def counts(self) -> dict[str, int]:
        return {name: len(rows) for name, rows in self.tables.items()}


class Reconciler:
    def __init__(self, store: ScopeStore, destination: Scope):
        self.store = store
        self.destination = destination
        self.id_maps: dict[str, IdMap] = {spec.name: IdMap() for spec in TABLES}
        # table → natural key → resolved id (destination rows plus rows minted here)
        self._natural: dict[str, dict[Any, str]] = {}

    async def _load_natural_keys(self) -> None:
        for spec in TABLES:
            if spec.natural_key is None:
                continue
            try:
                existing = await self.store.select(spec.name, self.destination.filters())
            except MissingTableError:
                existing = []
            keys: dict[Any, str] = {}
            for row in existing:
                keys.setdefault(spec.natural_key(row), row[spec.id_field])
            self._natural[spec.name] = keys
            logger.debug(
                f"{spec.name}: {len(keys)} natural keys in {self.destination}"
            )

    def _resolve_own_id(self, spec: TableSpec, row: Row) -> str:
        original = row.get(spec.id_field)
        if spec.natural_key is not None:
            known = self._natural.setdefault(spec.name, {})
            key = spec.natural_key(row)
            resolved = known.get(key)
            if resolved is None:
                resolved = new_id()
                known[key] = resolved
        else:
            resolved = new_id()
        self.id_maps[spec.name].bind(original, resolved)
        return resolved

    def _reconcile_table(self, spec: TableSpec, rows: list[Row], diagnostics: list[str]) -> list[Row]:
        kept: dict[tuple, Row] = {}

        for index, row in enumerate(rows):
            for name in spec.drop_fields:
                row.pop(name, None)

            if spec.id_field and is_temp_id(row.get(spec.id_field)):
                diagnostics.append(
                    f"{spec.name}[{index}]: skipped unpersisted temporary id {row[spec.id_field]}"
                )
                continue

            unresolved = []
            for fk_field, target in spec.references.items():
                resolved = self.id_maps[target].resolve(row.get(fk_field))
                if resolved is None:
                    unresolved.append(f"{_label(fk_field)} {row.get(fk_field)!r}")
                else:
                    row[fk_field] = resolved
            if unresolved:
                diagnostics.append(
                    f"{spec.name}[{index}]: referential error: unresolved "
                    + ", ".join(unresolved)
                )
                continue

            if spec.id_field:
                row[spec.id_field] = self._resolve_own_id(spec, row)

            if spec.decorated_name and row.get("name"):
                row["name"] = strip_branch_suffix(row["name"]) or row["name"]

            origin = _origin(row)
            if spec.scoped:
                row["tenant_id"] = self.destination.tenant_id
                row["branch_id"] = self.destination.branch_id

            if spec.rewrite is not None:
                row = spec.rewrite(row, origin, self.destination)
                if row is None:
                    continue

            key = tuple(row.get(k) for k in spec.conflict_key)
            previous = kept.get(key)
            if previous is None:
                kept[key] = row
            elif spec.dedup == "latest" and _timestamp(row) >= _timestamp(previous):
                # Later rows win ties; dict keeps the first insertion position
                kept[key] = row

        return list(kept.values())

    async def reconcile(self, document: SnapshotDocument) -> ReconciledSnapshot:
        await self._load_natural_keys()

        result = ReconciledSnapshot(destination=self.destination)
        for spec in TABLES:
            source_rows = document.tables.rows(spec.name)
            result.tables[spec.name] = self._reconcile_table(
                spec, source_rows, result.diagnostics
            )

        logger.info(
            f"Reconciled snapshot onto {self.destination}: "
            f"{sum(result.counts().values())} rows, "
            f"{len(result.diagnostics)} diagnostics"
        )
        return result


async def reconcile_snapshot(
    store: ScopeStore,
    document: SnapshotDocument,
    destination: Scope,
) -> ReconciledSnapshot:
    return await Reconciler(store, destination).reconcile(document)
