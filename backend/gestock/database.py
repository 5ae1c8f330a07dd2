"""Database engine, session factory, and declarative base.

All snapshot tables live under ScopedBase; rows are isolated by their
tenant_id / branch_id columns (or by their parent's ids), not by schema.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from gestock.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class ScopedBase(DeclarativeBase):
    """Models whose rows belong to a (tenant, branch) scope."""
    pass
