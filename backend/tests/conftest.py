"""Pytest configuration and fixtures for GeStock tests.

Provides an in-memory Scope Store, an in-memory Redis stand-in, an HTTP
client with overridden dependencies, and a seeded branch dataset.
"""

import fnmatch
import uuid
from datetime import date, datetime
from typing import AsyncGenerator, Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gestock.deps import get_provider_cache, get_store
from gestock.main import app
from gestock.scope import Scope
from gestock.services.provider_cache import ProviderCache
from gestock.store import MissingTableError, StoreError

# Tables whose rows get a database-generated id when none is supplied
_ID_TABLES = {
    "providers",
    "provider_weeks",
    "provider_week_providers",
    "provider_week_states",
    "orders",
    "order_items",
    "order_snapshots",
    "order_summaries_week",
}


# ── In-memory Scope Store ────────────────────────────────────────

class MemoryScopeStore:
    """ScopeStore test double with the same filter and upsert semantics.

    ``missing`` names tables that do not exist in this backend.
    ``fail_on(table, op, call=n)`` makes the n-th call (1-based) of ``op``
    on ``table`` fail; without ``call`` every call fails.
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.missing: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], int | None] = {}
        self._counts: dict[tuple[str, str], int] = {}

    def fail_on(self, table: str, op: str, call: int | None = None) -> None:
        self._failures[(table, op)] = call

    def _check(self, table: str, op: str) -> None:
        self.calls.append((op, table))
        if table in self.missing:
            raise MissingTableError(table)
        key = (table, op)
        self._counts[key] = self._counts.get(key, 0) + 1
        if key in self._failures:
            call = self._failures[key]
            if call is None or call == self._counts[key]:
                raise StoreError(table, f"simulated {op} failure")

    @staticmethod
    def _matches(row: dict, filters) -> bool:
        for column, value in filters.items():
            actual = row.get(column)
            if value is None:
                if actual is not None:
                    return False
            elif isinstance(value, (list, tuple, set, frozenset)):
                if actual not in value:
                    return False
            elif actual != value:
                return False
        return True

    async def select(self, table: str, filters) -> list[dict]:
        self._check(table, "select")
        return [dict(row) for row in self.tables.get(table, []) if self._matches(row, filters)]

    async def upsert(self, table: str, rows: list[dict], conflict_key: Iterable[str]) -> None:
        self._check(table, "upsert")
        keys = list(conflict_key)
        existing = self.tables.setdefault(table, [])
        for row in rows:
            row = dict(row)
            target = tuple(row.get(k) for k in keys)
            for stored in existing:
                if tuple(stored.get(k) for k in keys) == target:
                    stored.update(row)
                    break
            else:
                if table in _ID_TABLES and not row.get("id"):
                    row["id"] = str(uuid.uuid4())
                existing.append(row)

    async def delete(self, table: str, filters) -> None:
        self._check(table, "delete")
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        self.tables[table] = [
            row for row in self.tables.get(table, []) if not self._matches(row, filters)
        ]

    # ── Helpers for assertions ──

    def rows(self, table: str, **filters) -> list[dict]:
        return [dict(r) for r in self.tables.get(table, []) if self._matches(r, filters)]

    def count(self, table: str, **filters) -> int:
        return len(self.rows(table, **filters))

    def scope_counts(self, scope: Scope) -> dict[str, int]:
        """Row count per table belonging to ``scope`` (children via their parents)."""
        providers = {r["id"] for r in self.rows("providers", **scope.filters())}
        orders = {r["id"] for r in self.rows("orders", **scope.filters())}
        settings = [
            r for r in self.rows("app_settings", **scope.filters())
            if not r["key"].startswith("backup:")
        ]
        return {
            "providers": len(providers),
            "provider_weeks": self.count("provider_weeks", **scope.filters()),
            "provider_week_providers": self.count("provider_week_providers", **scope.filters()),
            "provider_week_states": self.count("provider_week_states", **scope.filters()),
            "orders": len(orders),
            "order_items": self.count("order_items", order_id=list(orders)),
            "order_snapshots": self.count("order_snapshots", order_id=list(orders)),
            "order_ui_state": self.count("order_ui_state", order_id=list(orders)),
            "order_summaries": self.count("order_summaries", provider_id=list(providers)),
            "order_summaries_week": self.count("order_summaries_week", provider_id=list(providers)),
            "app_settings": len(settings),
        }


# ── In-memory Redis ──────────────────────────────────────────────

class FakeRedis:
    """Enough of redis.asyncio.Redis for gestock.utils.cache."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value

    async def setex(self, key, ttl, value):
        self.data[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def scan_iter(self, match="*"):
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        return True

    async def aclose(self):
        pass


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr("gestock.utils.cache._redis_client", fake)
    return fake


# ── Store, cache and client fixtures ─────────────────────────────

@pytest.fixture
def store() -> MemoryScopeStore:
    return MemoryScopeStore()


@pytest.fixture
def provider_cache() -> ProviderCache:
    return ProviderCache()


@pytest.fixture
def branch_a() -> Scope:
    return Scope("t1", "a")


@pytest.fixture
def branch_b() -> Scope:
    return Scope("t1", "b")


@pytest_asyncio.fixture
async def client(store, provider_cache) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the store and provider cache overridden."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_provider_cache] = lambda: provider_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test data ────────────────────────────────────────────────────

# Per-table row counts written by seed_branch
SEEDED_COUNTS = {
    "providers": 2,
    "provider_weeks": 1,
    "provider_week_providers": 2,
    "provider_week_states": 1,
    "orders": 1,
    "order_items": 2,
    "order_snapshots": 1,
    "order_ui_state": 1,
    "order_summaries": 1,
    "order_summaries_week": 1,
    "app_settings": 1,
}


def seed_branch(store: MemoryScopeStore, scope: Scope, prefix: str = "") -> dict[str, str]:
    """Write a small but complete dataset for ``scope`` directly into ``store``.

    Two providers, one week linking both, one order with two items, a
    history entry, UI state, summaries and the sales pointer setting.
    """
    ids = {
        "dairy": f"{prefix}p-dairy",
        "bakery": f"{prefix}p-bakery",
        "week": f"{prefix}w-1",
        "order": f"{prefix}o-1",
    }
    scoped = {"tenant_id": scope.tenant_id, "branch_id": scope.branch_id}
    ts = datetime(2026, 3, 2, 9, 0)

    store.tables.setdefault("providers", []).extend([
        {"id": ids["dairy"], **scoped, "name": "Lácteos SA", "frequency": "weekly",
         "order_day": 1, "receive_day": 3, "status": "active", "created_at": ts, "updated_at": ts},
        {"id": ids["bakery"], **scoped, "name": "Panadería Norte", "frequency": "biweekly",
         "order_day": 2, "receive_day": 4, "status": "active", "created_at": ts, "updated_at": ts},
    ])
    store.tables.setdefault("provider_weeks", []).append(
        {"id": ids["week"], **scoped, "week_start": date(2026, 3, 2), "label": "W10"}
    )
    store.tables.setdefault("provider_week_providers", []).extend([
        {"id": f"{prefix}l-1", **scoped, "week_id": ids["week"], "provider_id": ids["dairy"]},
        {"id": f"{prefix}l-2", **scoped, "week_id": ids["week"], "provider_id": ids["bakery"]},
    ])
    store.tables.setdefault("provider_week_states", []).append(
        {"id": f"{prefix}s-1", **scoped, "week_id": ids["week"], "provider_id": ids["dairy"],
         "status": "done", "updated_at": ts}
    )
    store.tables.setdefault("orders", []).append(
        {"id": ids["order"], **scoped, "provider_id": ids["dairy"], "status": "sent",
         "total": 120.0, "created_at": ts}
    )
    store.tables.setdefault("order_items", []).extend([
        {"id": f"{prefix}i-1", "order_id": ids["order"], "product_name": "Leche", "qty": 5,
         "unit_price": 10.0, "subtotal": 50.0},
        {"id": f"{prefix}i-2", "order_id": ids["order"], "product_name": "Queso", "qty": 2,
         "unit_price": 35.0, "subtotal": 70.0},
    ])
    store.tables.setdefault("order_snapshots", []).append(
        {"id": f"{prefix}h-1", "order_id": ids["order"], "title": "sent", "payload": {"v": 1},
         "created_at": ts}
    )
    store.tables.setdefault("order_ui_state", []).append(
        {"order_id": ids["order"], "group_order": ["Leche", "Queso"], "checked_map": {"Leche": True},
         "updated_at": ts}
    )
    store.tables.setdefault("order_summaries", []).append(
        {"provider_id": ids["dairy"], "total": 120.0, "items": 7, "updated_at": ts}
    )
    store.tables.setdefault("order_summaries_week", []).append(
        {"id": f"{prefix}sw-1", "week_id": ids["week"], "provider_id": ids["dairy"],
         "total": 120.0, "items": 7, "updated_at": ts}
    )
    branch_part = f":{scope.branch_id}" if scope.branch_id else ""
    store.tables.setdefault("app_settings", []).append(
        {"key": f"sales_url:{scope.tenant_id}{branch_part}", **scoped,
         "value": "https://sheets.example/abc", "updated_at": ts}
    )
    return ids


@pytest.fixture
def seeded_a(store, branch_a) -> dict[str, str]:
    return seed_branch(store, branch_a)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Pipeline tests against the in-memory store")
    config.addinivalue_line("markers", "api: HTTP route tests")
    config.addinivalue_line("markers", "cache: Cache tests")
