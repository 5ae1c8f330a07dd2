"""Weekly order cycles and the providers included in each one."""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gestock.database import ScopedBase


class Week(ScopedBase):
    __tablename__ = "provider_weeks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str | None] = mapped_column(String(64), index=True)
    # Always a Monday
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    label: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class WeekProviderLink(ScopedBase):
    __tablename__ = "provider_week_providers"
    __table_args__ = (
        UniqueConstraint("week_id", "provider_id", name="uq_week_provider_link"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str | None] = mapped_column(String(64), index=True)
    week_id: Mapped[str] = mapped_column(String(36), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(36), nullable=False)
    added_at: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.utcnow)


class WeekState(ScopedBase):
    __tablename__ = "provider_week_states"
    __table_args__ = (
        UniqueConstraint("week_id", "provider_id", name="uq_week_provider_state"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_id: Mapped[str | None] = mapped_column(String(64), index=True)
    week_id: Mapped[str] = mapped_column(String(36), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # pending | done
    status: Mapped[str] = mapped_column(String(20), default="pending")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.utcnow)
