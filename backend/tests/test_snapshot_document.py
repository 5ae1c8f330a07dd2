"""Tests for the snapshot document parse boundary."""

import json
from datetime import date, datetime

import pytest

from gestock.middleware.exceptions import SnapshotParseError
from gestock.schemas.rows import provider_name_key, strip_branch_suffix
from gestock.schemas.snapshot import parse_snapshot
from gestock.services.transfer import import_snapshot


def _doc(**tables) -> dict:
    return {"version": 1, "exportedAt": "2026-03-02T10:00:00Z", "source": "test", "tables": tables}


@pytest.mark.unit
class TestParseSnapshot:
    def test_rejects_other_versions(self):
        with pytest.raises(SnapshotParseError, match="Unsupported snapshot version"):
            parse_snapshot({"version": 2, "tables": {}})

    def test_rejects_boolean_version(self):
        with pytest.raises(SnapshotParseError):
            parse_snapshot({"version": True, "tables": {}})

    def test_rejects_missing_version(self):
        with pytest.raises(SnapshotParseError):
            parse_snapshot({"tables": {}})

    def test_rejects_non_object_tables(self):
        with pytest.raises(SnapshotParseError, match="'tables' must be an object"):
            parse_snapshot({"version": 1, "tables": []})

    def test_rejects_invalid_json(self):
        with pytest.raises(SnapshotParseError, match="not valid JSON"):
            parse_snapshot(b"{not json")

    def test_rejects_non_object_document(self):
        with pytest.raises(SnapshotParseError, match="must be a JSON object"):
            parse_snapshot("[]")

    def test_reports_row_location(self):
        with pytest.raises(SnapshotParseError) as exc_info:
            parse_snapshot(_doc(providers=[{"id": "p1", "name": "Acme"}, {"id": "p2"}]))
        assert exc_info.value.message.startswith("tables.providers[1].name")

    def test_rejects_blank_provider_name(self):
        with pytest.raises(SnapshotParseError, match=r"tables\.providers\[0\]\.name"):
            parse_snapshot(_doc(providers=[{"id": "p1", "name": "   "}]))

    def test_rejects_non_array_table(self):
        with pytest.raises(SnapshotParseError, match="tables.orders must be an array"):
            parse_snapshot(_doc(orders={"id": "o1"}))

    def test_unknown_and_absent_tables_are_empty(self):
        document = parse_snapshot(_doc(legacy_table=[{"x": 1}]))
        assert set(document.tables.counts().values()) == {0}

    def test_accepts_json_text(self):
        document = parse_snapshot(json.dumps(_doc(providers=[{"id": "p1", "name": "Acme"}])))
        assert document.tables.counts()["providers"] == 1
        assert document.source == "test"


@pytest.mark.unit
class TestRowNormalisation:
    def test_freq_alias(self):
        document = parse_snapshot(_doc(providers=[{"id": "p1", "name": "A", "freq": "weekly"}]))
        assert document.tables.providers[0].frequency == "weekly"

    def test_week_start_anchored_to_monday(self):
        document = parse_snapshot(_doc(provider_weeks=[{"id": "w1", "week_start": "2026-03-04"}]))
        assert document.tables.provider_weeks[0].week_start == date(2026, 3, 2)

    def test_aware_timestamps_become_naive_utc(self):
        document = parse_snapshot(_doc(order_summaries=[
            {"provider_id": "p1", "updated_at": "2026-03-02T10:00:00+02:00"},
        ]))
        assert document.tables.order_summaries[0].updated_at == datetime(2026, 3, 2, 8, 0)

    def test_extra_columns_pass_through(self):
        document = parse_snapshot(_doc(providers=[{"id": "p1", "name": "A", "legacy_flag": 1}]))
        assert document.tables.rows("providers")[0]["legacy_flag"] == 1

    def test_to_dict_uses_wire_names(self):
        document = parse_snapshot(_doc())
        assert "exportedAt" in document.to_dict()
        assert document.to_dict()["version"] == 1

    def test_branch_suffix(self):
        assert strip_branch_suffix("Acme (Branch A)") == "Acme"
        assert strip_branch_suffix("  Acme  ") == "Acme"
        assert strip_branch_suffix("Acme (x) Ltd") == "Acme (x) Ltd"
        assert provider_name_key("ACME (Centro)") == provider_name_key("acme")


@pytest.mark.asyncio
@pytest.mark.integration
class TestParseFailsBeforeBackend:
    async def test_bad_document_touches_nothing(self, store, branch_b):
        with pytest.raises(SnapshotParseError):
            await import_snapshot(store, '{"version": 7, "tables": {}}', branch_b)
        assert store.calls == []
