"""PostgreSQL-backed Scope Store on SQLAlchemy async Core.

Every call opens its own transaction, so one upsert chunk (or one delete)
is the atomic unit.  Nothing here spans tables.
"""

import logging
from typing import Iterable

from sqlalchemy import Table, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import gestock.models  # noqa: F401 (registers every table on ScopedBase.metadata)
from gestock.database import ScopedBase, async_session
from gestock.store.base import (
    Filters,
    MissingTableError,
    Row,
    StoreError,
    looks_like_missing_table,
)

logger = logging.getLogger(__name__)


def _where(table: Table, filters: Filters) -> list:
    clauses = []
    for column_name, value in filters.items():
        column = table.c[column_name]
        if value is None:
            clauses.append(column.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(column.in_(list(value)))
        else:
            clauses.append(column == value)
    return clauses


class SqlScopeStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session):
        self._session_factory = session_factory

    def _table(self, name: str) -> Table:
        table = ScopedBase.metadata.tables.get(name)
        if table is None:
            raise MissingTableError(name)
        return table

    def _wrap(self, name: str, exc: SQLAlchemyError) -> StoreError:
        sqlstate = None
        if isinstance(exc, DBAPIError):
            sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        if sqlstate == "42P01" or looks_like_missing_table(str(exc)):
            return MissingTableError(name)
        return StoreError(name, str(getattr(exc, "orig", None) or exc))

    async def select(self, table: str, filters: Filters) -> list[Row]:
        t = self._table(table)
        stmt = select(t).where(*_where(t, filters))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [dict(row._mapping) for row in result.all()]
        except SQLAlchemyError as exc:
            raise self._wrap(table, exc) from exc

    async def upsert(self, table: str, rows: list[Row], conflict_key: Iterable[str]) -> None:
        if not rows:
            return
        t = self._table(table)
        keys = list(conflict_key)
        columns = set(t.c.keys())

        # Rows with identical column sets share one INSERT … ON CONFLICT
        groups: dict[tuple[str, ...], list[Row]] = {}
        for row in rows:
            clean = {k: v for k, v in row.items() if k in columns}
            groups.setdefault(tuple(sorted(clean)), []).append(clean)

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    for column_names, group in groups.items():
                        stmt = pg_insert(t)
                        updatable = [c for c in column_names if c not in keys]
                        if updatable:
                            stmt = stmt.on_conflict_do_update(
                                index_elements=keys,
                                set_={c: stmt.excluded[c] for c in updatable},
                            )
                        else:
                            stmt = stmt.on_conflict_do_nothing(index_elements=keys)
                        await session.execute(stmt, group)
        except SQLAlchemyError as exc:
            raise self._wrap(table, exc) from exc

        logger.debug(f"Upserted {len(rows)} rows into {table}")

    async def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        t = self._table(table)
        stmt = delete(t).where(*_where(t, filters))
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise self._wrap(table, exc) from exc
