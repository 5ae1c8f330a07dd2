"""Orders placed with a provider, their lines, history and UI state."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gestock.database import ScopedBase


class Order(ScopedBase):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str | None] = mapped_column(String(64), index=True)
    provider_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str | None] = mapped_column(String(20))
    total: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class OrderItem(ScopedBase):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    order_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_name: Mapped[str | None] = mapped_column(String(255))
    brand: Mapped[str | None] = mapped_column(String(255))
    qty: Mapped[float | None] = mapped_column(Float)
    unit_price: Mapped[float | None] = mapped_column(Float)
    subtotal: Mapped[float | None] = mapped_column(Float)
    stock: Mapped[float | None] = mapped_column(Float)


class OrderSnapshot(ScopedBase):
    """Append-only history of an order's state."""
    __tablename__ = "order_snapshots"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    order_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(255))
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class OrderUiState(ScopedBase):
    __tablename__ = "order_ui_state"

    order_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    group_order: Mapped[list | None] = mapped_column(JSON)
    checked_map: Mapped[dict | None] = mapped_column(JSON)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.utcnow)
