"""Declarative per-table configuration for the snapshot engine.

The builder, reconciler, cleaner and applier contain no per-table code
paths beyond what is described here.  Order of ``TABLES`` is the
dependency (apply) order; ``CLEANUP_ORDER`` is child-before-parent.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from gestock.schemas.rows import monday_of, provider_name_key
from gestock.scope import Scope
from gestock.snapshots.keys import is_backup_key, setting_key_for_scope


@dataclass(frozen=True)
class ParentLink:
    """Child tables without scope columns are selected through a parent."""
    field: str
    table: str


@dataclass(frozen=True)
class TableSpec:
    name: str
    conflict_key: tuple[str, ...]
    # Carries tenant_id / branch_id, always forced to the destination
    scoped: bool = False
    # Column holding the row's own id, remapped or minted on import
    id_field: str | None = None
    # Natural key used to merge onto existing destination rows; None = always mint
    natural_key: Callable[[dict], object] | None = None
    # Foreign-key field → table whose id map resolves it
    references: dict[str, str] = field(default_factory=dict)
    # How rows collapsing onto the same conflict key are resolved
    dedup: str = "first"  # "first" | "latest"
    drop_fields: tuple[str, ...] = ()
    parent: ParentLink | None = None
    # Strip "(Branch)" decoration from `name` on export
    decorated_name: bool = False
    # Last-step row rewrite: (row, origin scope, destination); None drops the row
    rewrite: Callable[[dict, Scope | None, Scope], dict | None] | None = None
    # Rows matching this predicate never leave the scope on export
    export_excludes: Callable[[dict], bool] | None = None
    # An export with no rows here has nothing worth exporting
    required: bool = False


def _week_key(row: dict) -> object:
    value = row.get("week_start")
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return monday_of(value).isoformat()
    return value


def _provider_key(row: dict) -> object:
    return provider_name_key(row.get("name"))


def _rewrite_setting(row: dict, origin: Scope | None, destination: Scope) -> dict | None:
    key = row.get("key") or ""
    if is_backup_key(key):
        return None
    row["key"] = setting_key_for_scope(key, origin, destination)
    return row


PROVIDERS = TableSpec(
    name="providers",
    conflict_key=("id",),
    scoped=True,
    id_field="id",
    natural_key=_provider_key,
    drop_fields=("created_at", "updated_at"),
    decorated_name=True,
    required=True,
)

WEEKS = TableSpec(
    name="provider_weeks",
    conflict_key=("id",),
    scoped=True,
    id_field="id",
    natural_key=_week_key,
    drop_fields=("created_at",),
)

WEEK_PROVIDERS = TableSpec(
    name="provider_week_providers",
    conflict_key=("week_id", "provider_id"),
    scoped=True,
    references={"week_id": "provider_weeks", "provider_id": "providers"},
    dedup="first",
    drop_fields=("id",),
)

WEEK_STATES = TableSpec(
    name="provider_week_states",
    conflict_key=("week_id", "provider_id"),
    scoped=True,
    references={"week_id": "provider_weeks", "provider_id": "providers"},
    dedup="latest",
    drop_fields=("id",),
)

ORDERS = TableSpec(
    name="orders",
    conflict_key=("id",),
    scoped=True,
    id_field="id",
    references={"provider_id": "providers"},
    # legacy per-user ownership, not part of the snapshot model
    drop_fields=("user_id", "created_by"),
)

ORDER_ITEMS = TableSpec(
    name="order_items",
    conflict_key=("id",),
    id_field="id",
    references={"order_id": "orders"},
    drop_fields=("product_id", "updated_at"),
    parent=ParentLink(field="order_id", table="orders"),
)

ORDER_SNAPSHOTS = TableSpec(
    name="order_snapshots",
    conflict_key=("id",),
    id_field="id",
    references={"order_id": "orders"},
    parent=ParentLink(field="order_id", table="orders"),
)

ORDER_UI_STATE = TableSpec(
    name="order_ui_state",
    conflict_key=("order_id",),
    references={"order_id": "orders"},
    parent=ParentLink(field="order_id", table="orders"),
)

ORDER_SUMMARIES = TableSpec(
    name="order_summaries",
    conflict_key=("provider_id",),
    references={"provider_id": "providers"},
    dedup="latest",
    parent=ParentLink(field="provider_id", table="providers"),
)

ORDER_SUMMARIES_WEEK = TableSpec(
    name="order_summaries_week",
    conflict_key=("week_id", "provider_id"),
    references={"week_id": "provider_weeks", "provider_id": "providers"},
    dedup="latest",
    drop_fields=("id",),
    parent=ParentLink(field="provider_id", table="providers"),
)

APP_SETTINGS = TableSpec(
    name="app_settings",
    conflict_key=("key",),
    scoped=True,
    rewrite=_rewrite_setting,
    export_excludes=lambda row: is_backup_key(row.get("key")),
)

TABLES: tuple[TableSpec, ...] = (
    PROVIDERS,
    WEEKS,
    WEEK_PROVIDERS,
    WEEK_STATES,
    ORDERS,
    ORDER_ITEMS,
    ORDER_SNAPSHOTS,
    ORDER_UI_STATE,
    ORDER_SUMMARIES,
    ORDER_SUMMARIES_WEEK,
    APP_SETTINGS,
)

TABLES_BY_NAME: dict[str, TableSpec] = {spec.name: spec for spec in TABLES}

CLEANUP_ORDER: tuple[str, ...] = (
    "order_ui_state",
    "order_snapshots",
    "order_items",
    "order_summaries",
    "order_summaries_week",
    "provider_week_states",
    "provider_week_providers",
    "provider_weeks",
    "orders",
    "providers",
    "app_settings",
)


def row_filters(
    spec: TableSpec,
    scope: Scope,
    parent_ids: dict[str, list[str]],
) -> dict | None:
    """Filter selecting a scope's rows of ``spec``.

    Scoped tables match on tenant/branch; child tables match on the ids of
    their parent rows in the scope.  None means the scope has no rows here.
    """
    if spec.scoped:
        return scope.filters()
    if spec.parent is not None:
        ids = parent_ids.get(spec.parent.table)
        if not ids:
            return None
        return {spec.parent.field: ids}
    raise ValueError(f"Table {spec.name} is neither scoped nor parented")
