"""Snapshot Builder: serialises one scope into a portable document."""

import logging
from datetime import datetime, timezone

from gestock.middleware.exceptions import NothingToExportError
from gestock.schemas.rows import strip_branch_suffix
from gestock.schemas.snapshot import SNAPSHOT_VERSION, SnapshotDocument, validate_tables
from gestock.scope import Scope
from gestock.snapshots.tables import TABLES, row_filters
from gestock.store import MissingTableError, Row, ScopeStore

logger = logging.getLogger(__name__)


async def select_or_empty(store: ScopeStore, table: str, filters: dict) -> list[Row]:
    """Select rows, treating a table missing from the backend as empty."""
    try:
        return await store.select(table, filters)
    except MissingTableError:
        logger.debug(f"Table {table} missing from backend, treated as empty")
        return []


async def build_snapshot(
    store: ScopeStore,
    scope: Scope,
    source: str | None = None,
) -> SnapshotDocument:
    """Read every snapshot table for ``scope``.

    Raises NothingToExportError when the scope has no providers.
    """
    tables: dict[str, list[Row]] = {}
    parent_ids: dict[str, list[str]] = {}

    for spec in TABLES:
        filters = row_filters(spec, scope, parent_ids)
        rows = [] if filters is None else await select_or_empty(store, spec.name, filters)

        if spec.export_excludes is not None:
            rows = [row for row in rows if not spec.export_excludes(row)]
        if spec.decorated_name:
            for row in rows:
                if row.get("name"):
                    row["name"] = strip_branch_suffix(row["name"]) or row["name"]
        if spec.id_field:
            parent_ids[spec.name] = [row[spec.id_field] for row in rows]

        if spec.required and not rows:
            raise NothingToExportError(scope.label)

        tables[spec.name] = rows

    document = SnapshotDocument(
        version=SNAPSHOT_VERSION,
        exported_at=datetime.now(timezone.utc),
        source=source or scope.label,
        tables=validate_tables(tables),
    )
    logger.info(
        f"Built snapshot of {scope}: "
        + ", ".join(f"{name}={count}" for name, count in document.tables.counts().items())
    )
    return document
