"""Pytest fixtures and configuration.

Unit tests never touch a real database: ``FakePool`` stands in for
``psycopg_pool.AsyncConnectionPool`` and records every checkout and
return so leak / double-release behavior can be asserted.
"""
import sys
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from postgres_tool_bridge.config import DatabaseConfig  # noqa: E402
from postgres_tool_bridge.db import PoolManager  # noqa: E402


@dataclass
class FakeResult:
    """What one ``cursor.execute`` call produces."""
    rows: list[dict[str, Any]] = field(default_factory=list)
    fields: Optional[list[str]] = None   # None means no result set (DML/DDL)
    rowcount: Optional[int] = None
    status: str = "SELECT"


@dataclass
class FakeColumn:
    name: str


class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self._conn = conn
        self._rows: list[dict[str, Any]] = []
        self.description = None
        self.rowcount = -1
        self.statusmessage = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql, params=None):
        self._conn.executed.append((sql, params))
        if self._conn.gate is not None:
            await self._conn.gate.wait()
        if self._conn.error is not None:
            raise self._conn.error
        result = self._conn.results.pop(0) if self._conn.results else FakeResult(rows=[{"test": 1}], fields=["test"])
        self._rows = list(result.rows)
        self.description = [FakeColumn(n) for n in result.fields] if result.fields is not None else None
        self.rowcount = result.rowcount if result.rowcount is not None else len(result.rows)
        self.statusmessage = result.status

    async def fetchmany(self, size):
        self._conn.fetched_sizes.append(size)
        return self._rows[:size]

    async def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self):
        self.results: list[FakeResult] = []
        self.error: Optional[Exception] = None
        self.executed: list[tuple[str, Any]] = []
        self.fetched_sizes: list[int] = []
        self.cancelled = False
        self.gate = None   # asyncio.Event holding statements "in flight" until set

    def cursor(self, row_factory=None):
        return FakeCursor(self)

    async def cancel_safe(self, timeout=None):
        self.cancelled = True


class FakePool:
    """Minimal async pool with the surface PoolManager uses."""

    def __init__(self, stuck_active: int = 0):
        self.conn = FakeConnection()
        self.getconn_error: Optional[Exception] = None
        self.getconn_calls = 0
        self.putconn_calls = 0
        self.opened = False
        self.closed = False
        self.stuck_active = stuck_active   # counted in pool_size, never available (e.g. failing to connect)

    async def open(self):
        self.opened = True

    async def getconn(self, timeout=None):
        if self.getconn_error is not None:
            raise self.getconn_error
        self.getconn_calls += 1
        return self.conn

    async def putconn(self, conn):
        assert conn is self.conn
        self.putconn_calls += 1

    def get_stats(self):
        checked_out = self.getconn_calls - self.putconn_calls + self.stuck_active
        return {"pool_size": 2 + self.stuck_active, "pool_available": 2 + self.stuck_active - checked_out, "requests_waiting": 0}

    async def close(self, timeout=None):
        self.closed = True


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("tests.postgres_tool_bridge")
    log.setLevel(logging.DEBUG)
    log.propagate = True
    return log


@pytest.fixture
def db_config() -> DatabaseConfig:
    return DatabaseConfig(max_rows=5)


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def db(db_config, logger, fake_pool) -> PoolManager:
    return PoolManager(db_config, logger, pool=fake_pool)
