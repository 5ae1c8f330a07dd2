"""Generic scoped key/value settings.

Keys are globally unique and usually scope-qualified, e.g.
``sales_url:<tenant>:<branch>`` or ``backup:<tenant>:<branch>``.
"""

from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from gestock.database import ScopedBase


class AppSetting(ScopedBase):
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    tenant_id: Mapped[str | None] = mapped_column(String(64), index=True)
    branch_id: Mapped[str | None] = mapped_column(String(64), index=True)
    value: Mapped[dict | list | str | None] = mapped_column(JSON)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
