"""
Shared pytest fixtures for the qadash test suite.

Provides:
    - gateway: SqlAlchemyGateway on a fresh SQLite file per test
    - faulty_gateway: wrapper over ``gateway`` that fails chosen
      (operation, table) pairs and records every write
    - seed: async row factory bound to ``gateway``
    - app / client: Flask application + test client on their own SQLite file
    - api_seed: sync row factory bound to the app's gateway
"""

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from qadash import create_app
from qadash.core.exceptions import PersistenceError
from qadash.models import create_engine
from qadash.models.gateway import PersistenceGateway, SqlAlchemyGateway
from qadash.services.data_flow import DataFlowService

USER_ID = "00000000-0000-0000-0000-0000000000aa"


# ── Gateway wrappers ─────────────────────────────────────────────────────


class FaultyGateway(PersistenceGateway):
    """Delegating gateway with fault injection.

    ``fail_on`` holds (operation, table) pairs; matching calls raise
    ``PersistenceError`` before reaching the store. ``writes`` lists every
    insert/update that was attempted, failed or not.
    """

    def __init__(self, inner):
        self.inner = inner
        self.fail_on = set()
        self.writes = []

    def _check(self, operation, table):
        if (operation, table) in self.fail_on:
            cause = OperationalError("injected", {}, Exception("database is locked"))
            raise PersistenceError(
                f"{operation} on {table} failed: injected", operation=operation, table=table,
            ) from cause

    async def read(self, table, filters=None, order_by=None, limit=None):
        self._check("read", table)
        return await self.inner.read(table, filters, order_by, limit)

    async def insert(self, table, rows):
        self.writes.append(("insert", table))
        self._check("insert", table)
        return await self.inner.insert(table, rows)

    async def update(self, table, patch, filters):
        self.writes.append(("update", table))
        self._check("update", table)
        return await self.inner.update(table, patch, filters)


class Seeder:
    """Row factory for tests. Every helper returns the persisted dict(s)."""

    def __init__(self, gateway, user_id=USER_ID):
        self.gateway = gateway
        self.user_id = user_id

    async def test_case(self, **overrides):
        row = {
            "user_id": self.user_id,
            "title": "Login works",
            "type": "smoke",
            "priority": "high",
            "status": "todo",
        }
        row.update(overrides)
        return await self.gateway.insert("test_cases", row)

    async def test_cases(self, count, **overrides):
        rows = []
        for i in range(count):
            rows.append(await self.test_case(title=f"Case {i + 1}", **overrides))
        return rows

    async def execution(self, test_case_id, status="passed", executed_at=None, **overrides):
        row = {
            "test_case_id": test_case_id,
            "executed_by": self.user_id,
            "status": status,
            "execution_time": 1.0,
            "executed_at": executed_at or datetime.now(timezone.utc),
        }
        row.update(overrides)
        return await self.gateway.insert("test_executions", row)

    async def integration(self, provider="jira", status="active", **overrides):
        row = {
            "user_id": self.user_id,
            "name": f"{provider.title()} integration",
            "provider": provider,
            "configuration": {},
            "status": status,
        }
        row.update(overrides)
        return await self.gateway.insert("integrations", row)


class SyncSeeder:
    """``Seeder`` for synchronous (Flask client) tests."""

    def __init__(self, gateway, user_id=USER_ID):
        self._seeder = Seeder(gateway, user_id)
        self.gateway = gateway

    def __getattr__(self, name):
        method = getattr(self._seeder, name)

        def run(*args, **kwargs):
            return asyncio.run(method(*args, **kwargs))

        return run

    def read(self, table, filters=None):
        return asyncio.run(self.gateway.read(table, filters))


# ── Service-level fixtures ───────────────────────────────────────────────


@pytest_asyncio.fixture
async def gateway(tmp_path):
    """Persistence gateway on an empty per-test SQLite database."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'qadash.db'}")
    gw = SqlAlchemyGateway(engine)
    await gw.create_schema()
    yield gw
    await gw.dispose()


@pytest_asyncio.fixture
async def faulty_gateway(gateway):
    return FaultyGateway(gateway)


@pytest_asyncio.fixture
async def seed(gateway):
    return Seeder(gateway)


# ── App fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def app(tmp_path):
    """Flask application on a per-test SQLite file."""
    return create_app("testing", {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        "DEFAULT_USER_ID": USER_ID,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api_seed(app):
    return SyncSeeder(app.extensions["persistence_gateway"])


@pytest.fixture
def api_faults(app):
    """Swap the app's service for one running on a FaultyGateway."""
    faulty = FaultyGateway(app.extensions["persistence_gateway"])
    app.extensions["data_flow"] = DataFlowService.from_config(faulty, app.config)
    return faulty
