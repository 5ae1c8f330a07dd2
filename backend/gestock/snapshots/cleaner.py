"""Cascade Cleaner: purges a destination scope before a snapshot is applied.

Deletes run child-before-parent (``tables.CLEANUP_ORDER``).  Cleanup is
best-effort: a missing table is skipped silently, any other failure is
recorded and the next table is still attempted.
"""

import logging

from gestock.scope import Scope
from gestock.snapshots.tables import CLEANUP_ORDER, TABLES, TABLES_BY_NAME, row_filters
from gestock.store import MissingTableError, ScopeStore, StoreError

logger = logging.getLogger(__name__)


async def _collect_parent_ids(
    store: ScopeStore,
    scope: Scope,
    diagnostics: list[str],
) -> dict[str, list[str]]:
    """Ids of the scope's rows in every table other tables hang off."""
    parents = {spec.parent.table for spec in TABLES if spec.parent is not None}
    parent_ids: dict[str, list[str]] = {}
    for name in parents:
        spec = TABLES_BY_NAME[name]
        try:
            rows = await store.select(name, scope.filters())
        except MissingTableError:
            rows = []
        except StoreError as exc:
            diagnostics.append(f"cleanup {name}: could not list ids: {exc.message}")
            rows = []
        parent_ids[name] = [row[spec.id_field] for row in rows]
    return parent_ids


async def clean_scope(store: ScopeStore, scope: Scope) -> list[str]:
    """Delete every snapshot row of ``scope``. Returns diagnostics."""
    diagnostics: list[str] = []
    parent_ids = await _collect_parent_ids(store, scope, diagnostics)

    for name in CLEANUP_ORDER:
        spec = TABLES_BY_NAME[name]
        filters = row_filters(spec, scope, parent_ids)
        if filters is None:
            continue

        try:
            if spec.export_excludes is not None:
                # Only the rows that would be exported; e.g. backup slots stay
                rows = await store.select(name, filters)
                (key,) = spec.conflict_key
                doomed = [row[key] for row in rows if not spec.export_excludes(row)]
                if not doomed:
                    continue
                filters = {key: doomed}
            await store.delete(name, filters)
        except MissingTableError:
            logger.debug(f"cleanup {name}: table missing, skipped")
        except StoreError as exc:
            logger.warning(f"cleanup {name} failed for {scope}: {exc.message}")
            diagnostics.append(f"cleanup {name}: {exc.message}")

    logger.info(f"Cleaned {scope} ({len(diagnostics)} diagnostics)")
    return diagnostics
