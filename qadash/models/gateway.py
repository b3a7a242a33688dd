"""
Persistence Gateway — the only way services touch the relational store.

Services never open sessions or build SQL. They call the four gateway
operations with a table name and plain dicts:

    rows = await gateway.read("test_executions",
                              {"executed_at__gte": start},
                              order_by="-executed_at", limit=10)
    row = await gateway.insert("reports", {...})
    await gateway.update("test_cases", {"status": "done"}, {"id": tc_id})
    tc = await gateway.fetch_one("test_cases", tc_id)   # NotFoundError if absent

Filters:
    ``column``        equality
    ``column__ne``    inequality
    ``column__gte`` / ``__gt`` / ``__lte`` / ``__lt``   range
    ``column__in``    membership (any iterable)

Transaction policy: every call is its own short transaction. There is no
cross-call transaction; multi-step operations (recording an execution,
running a sync) are sequenced by the services and documented there.

Errors: every ``SQLAlchemyError`` is re-raised as ``PersistenceError``
with the driver exception chained.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import select, update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from qadash.core.exceptions import NotFoundError, PersistenceError
from qadash.models import Base, import_all_models
from qadash.models.integrations import Integration, IntegrationSync
from qadash.models.notification import Notification
from qadash.models.reporting import Report
from qadash.models.testing import TestCase, TestExecution

logger = logging.getLogger(__name__)

TABLES = {
    "test_cases": TestCase,
    "test_executions": TestExecution,
    "integrations": Integration,
    "integration_syncs": IntegrationSync,
    "reports": Report,
    "notifications": Notification,
}

# Entity names used in NotFoundError messages
RESOURCE_NAMES = {
    "test_cases": "TestCase",
    "test_executions": "TestExecution",
    "integrations": "Integration",
    "integration_syncs": "IntegrationSync",
    "reports": "Report",
    "notifications": "Notification",
}

_OPERATORS = {
    "eq": lambda col, v: col == v,
    "ne": lambda col, v: col != v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "in": lambda col, v: col.in_(list(v)),
}


class PersistenceGateway(ABC):
    """Generic filtered read / insert / update over named tables."""

    @abstractmethod
    async def read(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Return rows of ``table`` matching ``filters`` as dicts."""

    @abstractmethod
    async def insert(self, table: str, rows: dict | list[dict]) -> dict | list[dict]:
        """Insert one row (dict) or many (list) and return the persisted row(s)."""

    @abstractmethod
    async def update(self, table: str, patch: Mapping[str, Any], filters: Mapping[str, Any]) -> None:
        """Apply ``patch`` to every row of ``table`` matching ``filters``."""

    async def fetch_one(self, table: str, row_id: str) -> dict:
        """Return the row with primary key ``row_id``.

        Raises:
            NotFoundError: No such row.
        """
        rows = await self.read(table, {"id": row_id}, limit=1)
        if not rows:
            raise NotFoundError(resource=RESOURCE_NAMES.get(table, table), resource_id=row_id)
        return rows[0]


class SqlAlchemyGateway(PersistenceGateway):
    """``PersistenceGateway`` backed by an SQLAlchemy ``AsyncEngine``.

    Args:
        engine: Engine from ``qadash.models.create_engine``.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    # ── Schema ────────────────────────────────────────────────────────────

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        import_all_models()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ── Helpers ───────────────────────────────────────────────────────────

    def _model(self, table: str, operation: str):
        model = TABLES.get(table)
        if model is None:
            raise PersistenceError(f"Unknown table {table!r}", operation=operation, table=table)
        return model

    def _column(self, model, name: str, operation: str):
        col = model.__table__.columns.get(name)
        if col is None:
            raise PersistenceError(
                f"Unknown column {model.__tablename__}.{name}",
                operation=operation,
                table=model.__tablename__,
            )
        return col

    def _conditions(self, model, filters: Mapping[str, Any] | None, operation: str) -> list:
        conditions = []
        for key, value in (filters or {}).items():
            name, _, op = key.partition("__")
            op = op or "eq"
            if op not in _OPERATORS:
                raise PersistenceError(f"Unknown filter operator {op!r} in {key!r}",
                                       operation=operation, table=model.__tablename__)
            col = self._column(model, name, operation)
            if op == "eq" and value is None:
                conditions.append(col.is_(None))
            else:
                conditions.append(_OPERATORS[op](col, value))
        return conditions

    def _ordering(self, model, order_by: str | Sequence[str] | None) -> list:
        if not order_by:
            return []
        keys: Iterable[str] = [order_by] if isinstance(order_by, str) else order_by
        clauses = []
        for key in keys:
            desc = key.startswith("-")
            col = self._column(model, key.lstrip("-"), "read")
            clauses.append(col.desc() if desc else col.asc())
        return clauses

    # ── Operations ────────────────────────────────────────────────────────

    async def read(self, table, filters=None, order_by=None, limit=None):
        model = self._model(table, "read")
        stmt = select(model).where(*self._conditions(model, filters, "read"))
        stmt = stmt.order_by(*self._ordering(model, order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(stmt)
                return [obj.to_dict() for obj in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("Gateway read failed table=%s error=%s", table, exc)
            raise PersistenceError(f"Read from {table} failed: {exc}", operation="read", table=table) from exc

    async def insert(self, table, rows):
        model = self._model(table, "insert")
        many = isinstance(rows, list)
        payloads = rows if many else [rows]
        for payload in payloads:
            for key in payload:
                self._column(model, key, "insert")
        objs = [model(**payload) for payload in payloads]
        try:
            async with self._sessionmaker() as session, session.begin():
                session.add_all(objs)
        except SQLAlchemyError as exc:
            logger.error("Gateway insert failed table=%s rows=%d error=%s", table, len(objs), exc)
            raise PersistenceError(f"Insert into {table} failed: {exc}", operation="insert", table=table) from exc
        persisted = [obj.to_dict() for obj in objs]
        return persisted if many else persisted[0]

    async def update(self, table, patch, filters):
        model = self._model(table, "update")
        for key in patch:
            self._column(model, key, "update")
        stmt = (
            sa_update(model)
            .where(*self._conditions(model, filters, "update"))
            .values(**patch)
        )
        try:
            async with self._sessionmaker() as session, session.begin():
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Gateway update failed table=%s error=%s", table, exc)
            raise PersistenceError(f"Update of {table} failed: {exc}", operation="update", table=table) from exc
