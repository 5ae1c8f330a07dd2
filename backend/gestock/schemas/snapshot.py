"""The portable snapshot document and its parse boundary.

Wire format:
{
    "version": 1,
    "exportedAt": "<ISO-8601 timestamp>",
    "source": "<free-text tag>",
    "tables": {"providers": [...], "provider_weeks": [...], ...}
}

``parse_snapshot`` is the only way a document enters the pipeline.  Any
problem with it raises SnapshotParseError before the backend is touched.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gestock.middleware.exceptions import SnapshotParseError
from gestock.schemas.rows import (
    ROW_SCHEMAS,
    AppSettingRow,
    OrderItemRow,
    OrderRow,
    OrderSnapshotRow,
    OrderSummaryRow,
    OrderSummaryWeekRow,
    OrderUiStateRow,
    ProviderRow,
    SnapshotRow,
    WeekProviderLinkRow,
    WeekRow,
    WeekStateRow,
)

SNAPSHOT_VERSION = 1


class SnapshotTables(BaseModel):
    model_config = ConfigDict(extra="ignore")

    providers: list[ProviderRow] = Field(default_factory=list)
    provider_weeks: list[WeekRow] = Field(default_factory=list)
    provider_week_providers: list[WeekProviderLinkRow] = Field(default_factory=list)
    provider_week_states: list[WeekStateRow] = Field(default_factory=list)
    orders: list[OrderRow] = Field(default_factory=list)
    order_items: list[OrderItemRow] = Field(default_factory=list)
    order_snapshots: list[OrderSnapshotRow] = Field(default_factory=list)
    order_ui_state: list[OrderUiStateRow] = Field(default_factory=list)
    order_summaries: list[OrderSummaryRow] = Field(default_factory=list)
    order_summaries_week: list[OrderSummaryWeekRow] = Field(default_factory=list)
    app_settings: list[AppSettingRow] = Field(default_factory=list)

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Return a table's rows as fresh dicts (safe to mutate)."""
        models: list[SnapshotRow] = getattr(self, table)
        return [m.model_dump() for m in models]

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in ROW_SCHEMAS}


class SnapshotDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = SNAPSHOT_VERSION
    exported_at: datetime | None = Field(default=None, alias="exportedAt")
    source: str = ""
    tables: SnapshotTables = Field(default_factory=SnapshotTables)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def validate_tables(raw_tables: dict[str, Any]) -> SnapshotTables:
    validated: dict[str, list[SnapshotRow]] = {}
    for table, schema in ROW_SCHEMAS.items():
        raw_rows = raw_tables.get(table)
        if raw_rows is None:
            continue
        if not isinstance(raw_rows, list):
            raise SnapshotParseError(f"tables.{table} must be an array")

        parsed = []
        for index, raw_row in enumerate(raw_rows):
            if not isinstance(raw_row, dict):
                raise SnapshotParseError(f"tables.{table}[{index}] must be an object")
            try:
                parsed.append(schema.model_validate(raw_row))
            except ValidationError as exc:
                first = exc.errors()[0]
                field = ".".join(str(loc) for loc in first["loc"])
                raise SnapshotParseError(
                    f"tables.{table}[{index}].{field}: {first['msg']}"
                ) from exc
        validated[table] = parsed
    return SnapshotTables(**validated)


def parse_snapshot(raw: str | bytes | dict[str, Any]) -> SnapshotDocument:
    """Parse and validate a snapshot document (JSON text or decoded object)."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise SnapshotParseError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise SnapshotParseError("Snapshot must be a JSON object")

    version = raw.get("version")
    if isinstance(version, bool) or version != SNAPSHOT_VERSION:
        raise SnapshotParseError(
            f"Unsupported snapshot version: {version!r} (expected {SNAPSHOT_VERSION})"
        )

    tables = raw.get("tables")
    if not isinstance(tables, dict):
        raise SnapshotParseError("Snapshot 'tables' must be an object")

    try:
        exported_at = raw.get("exportedAt")
        document = SnapshotDocument(
            version=SNAPSHOT_VERSION,
            exported_at=exported_at,
            source=str(raw.get("source") or ""),
            tables=validate_tables(tables),
        )
    except ValidationError as exc:
        raise SnapshotParseError(f"Invalid snapshot header: {exc.errors()[0]['msg']}") from exc

    return document
