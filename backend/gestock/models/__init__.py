"""Snapshot tables. All models use ScopedBase."""

# ── Providers and weekly cycles ──────────────────────────────
from gestock.models.provider import Provider
from gestock.models.week import Week, WeekProviderLink, WeekState

# ── Orders ───────────────────────────────────────────────────
from gestock.models.order import Order, OrderItem, OrderSnapshot, OrderUiState
from gestock.models.summary import OrderSummary, OrderSummaryWeek

# ── Settings ─────────────────────────────────────────────────
from gestock.models.app_setting import AppSetting

__all__ = [
    "Provider", "Week", "WeekProviderLink", "WeekState",
    "Order", "OrderItem", "OrderSnapshot", "OrderUiState",
    "OrderSummary", "OrderSummaryWeek",
    "AppSetting",
]
