"""Cached order aggregates, overall and per week. Last write wins."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gestock.database import ScopedBase


class OrderSummary(ScopedBase):
    __tablename__ = "order_summaries"

    provider_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    total: Mapped[float | None] = mapped_column(Float)
    items: Mapped[float | None] = mapped_column(Float)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)


class OrderSummaryWeek(ScopedBase):
    __tablename__ = "order_summaries_week"
    __table_args__ = (
        UniqueConstraint("week_id", "provider_id", name="uq_order_summary_week"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    week_id: Mapped[str] = mapped_column(String(36), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    total: Mapped[float | None] = mapped_column(Float)
    items: Mapped[float | None] = mapped_column(Float)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)
