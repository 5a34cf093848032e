"""Shared pytest fixtures for the ProxySQL exporter test suite."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Sequence

import aiomysql
import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from proxysql_exporter.collectors.pool import POOL_QUERY
from proxysql_exporter.collectors.status import STATUS_QUERY
from proxysql_exporter.config import Settings
from proxysql_exporter.errors import ConnectError, QueryError
from proxysql_exporter.main import create_app

STATUS_ROWS = [
    ("Active_Transactions", "3"),
    ("Backend_query_time_nsec", "76355784684851"),
    ("Client_Connections_aborted", "0"),
    ("Client_Connections_connected", "64"),
    ("Client_Connections_created", "1087931"),
    ("Servers_table_version", "2019470"),
]

POOL_ROWS = [
    ("0", "10.91.142.80", "3306", "ONLINE", "0", "45", "1895677", "46", "197941647", "10984550806", "321063484988", "163"),
    ("0", "10.91.142.82", "3306", "SHUNNED", "0", "97", "39859", "0", "386686994", "21643682247", "641406745151", "255"),
    ("1", "10.91.142.88", "3306", "OFFLINE_SOFT", "0", "18", "31471", "6391", "255993467", "14327840185", "420795691329", "283"),
    ("2", "10.91.142.89", "3306", "OFFLINE_HARD", "0", "18", "31471", "6391", "255993467", "14327840185", "420795691329", "283"),
]


class FakeAdminConnection:
    """In-memory stand-in for an admin interface connection.

    ``results`` maps query text to the rows it returns; a query listed in
    ``failing`` raises :class:`QueryError` instead.
    """

    def __init__(
        self,
        results: dict[str, Sequence[tuple]] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.results = dict(results or {})
        self.failing = set(failing or ())
        self.queries: list[str] = []
        self.closed = False

    async def query(self, sql: str) -> list[tuple]:
        self.queries.append(sql)
        if self.closed:
            raise QueryError("connection is closed")
        if sql in self.failing:
            raise QueryError("Lost connection to MySQL server during query")
        return list(self.results.get(sql, []))

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Connection factory that fails ``failures`` times, then hands out
    connections built from ``make``.
    """

    def __init__(self, make, failures: int = 0) -> None:
        self._make = make
        self.failures = failures
        self.attempts = 0
        self.opened: list[FakeAdminConnection] = []

    async def __call__(self) -> FakeAdminConnection:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectError("Can't connect to MySQL server on 'localhost'")
        conn = self._make()
        self.opened.append(conn)
        return conn


class RecordingSleep:
    """Sleep replacement recording every requested delay."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeCursor:
    """Async cursor returning canned rows, or raising ``error`` on execute."""

    def __init__(self, rows=None, error: Exception | None = None, delay: float = 0):
        self._rows = rows or []
        self._error = error
        self._delay = delay
        self.executed: list[str] = []

    async def __aenter__(self) -> "FakeCursor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def execute(self, sql: str) -> None:
        self.executed.append(sql)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error

    async def fetchall(self):
        return tuple(self._rows)


class FakeDriverConnection:
    """Minimal ``aiomysql.Connection`` whose graceful close always fails."""

    def __init__(self, cursor: FakeCursor) -> None:
        self._cursor = cursor
        self.closed = False

    def cursor(self) -> FakeCursor:
        return self._cursor

    async def ensure_closed(self) -> None:
        raise aiomysql.OperationalError(2013, "Lost connection")

    def close(self) -> None:
        self.closed = True


def healthy_connection() -> FakeAdminConnection:
    return FakeAdminConnection({STATUS_QUERY: STATUS_ROWS, POOL_QUERY: POOL_ROWS})


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def connector() -> FakeConnector:
    return FakeConnector(healthy_connection)


@pytest.fixture()
def app(connector: FakeConnector) -> FastAPI:
    """Return an application wired to the fake admin interface."""
    return create_app(Settings(), connect=connector)


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an async HTTP client wired to the ASGI app.

    Uses ``httpx.ASGITransport`` so that requests are handled in-process
    without starting a real server.  The lifespan is not run, so the
    status poller stays idle unless a test drives it.
    """
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as ac:
        yield ac
