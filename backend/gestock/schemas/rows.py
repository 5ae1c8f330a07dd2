"""Row schemas for every snapshot table.

One model per table; ``ROW_SCHEMAS`` maps the table name to its model, so a
snapshot's ``tables`` object is a union tagged by its keys.  Rows are
validated once when a document is parsed and flow through the pipeline as
plain dicts afterwards.

Extra columns are allowed and passed through: older exports carry columns
this service does not model, and the SQL store ignores anything the target
table lacks.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# All timestamps are stored naive UTC, matching datetime.utcnow() defaults
Timestamp = Annotated[datetime | None, AfterValidator(_naive_utc)]

_BRANCH_SUFFIX_RE = re.compile(r"\s*\([^()]*\)\s*$")


def strip_branch_suffix(name: str) -> str:
    """``"Acme (Branch A)"`` → ``"Acme"``."""
    return _BRANCH_SUFFIX_RE.sub("", name).strip()


def provider_name_key(name: str | None) -> str:
    """Natural key for providers: trimmed, undecorated, case-folded."""
    name = (name or "").strip()
    return (strip_branch_suffix(name) or name).casefold()


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


class SnapshotRow(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ScopedRow(SnapshotRow):
    tenant_id: str | None = None
    branch_id: str | None = None


# ── Providers and weeks ─────────────────────────────────────


class ProviderRow(ScopedRow):
    id: str
    name: str
    frequency: str | None = Field(
        default=None, validation_alias=AliasChoices("frequency", "freq")
    )
    order_day: int | None = None
    receive_day: int | None = None
    responsible: str | None = None
    status: str | None = None
    payment_method: str | None = None
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("provider name must not be blank")
        return v


class WeekRow(ScopedRow):
    id: str
    week_start: date
    label: str | None = None
    created_at: Timestamp = None

    @field_validator("week_start")
    @classmethod
    def anchor_to_monday(cls, v: date) -> date:
        return monday_of(v)


class WeekProviderLinkRow(ScopedRow):
    week_id: str
    provider_id: str
    added_at: Timestamp = None


class WeekStateRow(ScopedRow):
    week_id: str
    provider_id: str
    status: str = "pending"
    updated_at: Timestamp = None


# ── Orders ──────────────────────────────────────────────────


class OrderRow(ScopedRow):
    id: str
    provider_id: str
    status: str | None = None
    total: float | None = None
    notes: str | None = None
    created_at: Timestamp = None


class OrderItemRow(SnapshotRow):
    id: str | None = None
    order_id: str
    product_name: str | None = None
    brand: str | None = None
    qty: float | None = None
    unit_price: float | None = None
    subtotal: float | None = None
    stock: float | None = None


class OrderSnapshotRow(SnapshotRow):
    id: str | None = None
    order_id: str
    title: str | None = None
    payload: Any = None
    created_at: Timestamp = None


class OrderUiStateRow(SnapshotRow):
    order_id: str
    group_order: list[Any] | None = None
    checked_map: dict[str, Any] | None = None
    updated_at: Timestamp = None


# ── Aggregates and settings ─────────────────────────────────


class OrderSummaryRow(SnapshotRow):
    provider_id: str
    total: float | None = None
    items: float | None = None
    updated_at: Timestamp = None


class OrderSummaryWeekRow(OrderSummaryRow):
    week_id: str


class AppSettingRow(ScopedRow):
    key: str
    value: Any = None
    updated_at: Timestamp = None


ROW_SCHEMAS: dict[str, type[SnapshotRow]] = {
    "providers": ProviderRow,
    "provider_weeks": WeekRow,
    "provider_week_providers": WeekProviderLinkRow,
    "provider_week_states": WeekStateRow,
    "orders": OrderRow,
    "order_items": OrderItemRow,
    "order_snapshots": OrderSnapshotRow,
    "order_ui_state": OrderUiStateRow,
    "order_summaries": OrderSummaryRow,
    "order_summaries_week": OrderSummaryWeekRow,
    "app_settings": AppSettingRow,
}
