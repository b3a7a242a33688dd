"""
qadash persistence layer.

Exposes the declarative ``Base`` shared by every model module and
``create_engine`` which builds the async engine the Persistence Gateway
runs on.

Usage:
    from qadash.models import create_engine
    from qadash.models.gateway import SqlAlchemyGateway

    engine = create_engine("sqlite+aiosqlite:///instance/qadash.db")
    gateway = SqlAlchemyGateway(engine)
    await gateway.create_schema()
"""

from datetime import datetime, timezone
import uuid

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all qadash tables."""


def _utcnow():
    return datetime.now(timezone.utc)


def _uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine(url: str, **engine_options) -> AsyncEngine:
    """Create an ``AsyncEngine`` for ``url`` with FK enforcement on SQLite."""
    engine = create_async_engine(url, **engine_options)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_fk)
    return engine


def import_all_models():
    """Import every model module so ``Base.metadata`` knows all tables."""
    from qadash.models import integrations as _integrations_models  # noqa: F401
    from qadash.models import notification as _notification_models  # noqa: F401
    from qadash.models import reporting as _reporting_models        # noqa: F401
    from qadash.models import testing as _testing_models            # noqa: F401
