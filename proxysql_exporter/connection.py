"""Connections to the ProxySQL admin interface.

:class:`MySQLAdminConnection` wraps an ``aiomysql`` connection behind the
small :class:`AdminConnection` protocol the collectors depend on.
:class:`ConnectionSupplier` hands out connections and keeps retrying,
with a fixed delay and no retry limit, until the admin interface is
reachable again.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol, Sequence

import aiomysql
import structlog

from proxysql_exporter.config import Settings
from proxysql_exporter.errors import ConnectError, QueryError

logger = structlog.get_logger(__name__)

Row = Sequence[Any]
Sleep = Callable[[float], Awaitable[None]]


class AdminConnection(Protocol):
    """Query-executing handle on the admin interface."""

    async def query(self, sql: str) -> list[Row]:
        """Run ``sql`` and return every result row.

        Raises:
            QueryError: If the query cannot be executed.
        """
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


Connect = Callable[[], Awaitable[AdminConnection]]


class MySQLAdminConnection:
    """:class:`AdminConnection` backed by an ``aiomysql`` connection.

    Parameters:
        conn: An open ``aiomysql`` connection.
        query_timeout: Seconds a single query may take before it is
                       abandoned.
    """

    def __init__(self, conn: aiomysql.Connection, query_timeout: float) -> None:
        self._conn = conn
        self._query_timeout = query_timeout

    async def query(self, sql: str) -> list[Row]:
        try:
            return await asyncio.wait_for(self._fetch_all(sql), self._query_timeout)
        except asyncio.TimeoutError as exc:
            raise QueryError(
                f"query timed out after {self._query_timeout}s"
            ) from exc
        except (aiomysql.Error, OSError) as exc:
            raise QueryError(str(exc)) from exc
        except Exception as exc:
            # Anything else the driver raises (e.g. undecodable row data)
            # still leaves the connection in an unknown state.
            raise QueryError(f"{type(exc).__name__}: {exc}") from exc

    async def _fetch_all(self, sql: str) -> list[Row]:
        async with self._conn.cursor() as cur:
            await cur.execute(sql)
            return list(await cur.fetchall())

    async def close(self) -> None:
        # ensure_closed() sends COM_QUIT and may fail on a dead socket.
        try:
            await self._conn.ensure_closed()
        finally:
            self._conn.close()


def mysql_connector(config: Settings) -> Connect:
    """Return a coroutine factory that opens admin connections for ``config``."""
    target = config.admin_target

    async def connect() -> AdminConnection:
        try:
            conn = await aiomysql.connect(
                host=target.host,
                port=target.port,
                user=config.PROXYSQL_USER,
                password=config.PROXYSQL_PASSWORD,
                db=target.database,
                connect_timeout=config.CONNECT_TIMEOUT_SECONDS,
                autocommit=True,
            )
        except Exception as exc:
            raise ConnectError(
                f"cannot connect to {target.host}:{target.port}: {exc}"
            ) from exc
        return MySQLAdminConnection(conn, query_timeout=config.QUERY_TIMEOUT_SECONDS)

    return connect


class ConnectionSupplier:
    """Hands out admin connections, retrying until one succeeds.

    Parameters:
        connect: Coroutine factory opening a new connection; raises
                 :class:`ConnectError` on failure.
        retry_interval: Seconds to wait between failed attempts.
        sleep: Coroutine used for waiting (``asyncio.sleep`` by default).
        name: Label identifying the owner in log lines.
    """

    def __init__(
        self,
        connect: Connect,
        retry_interval: float,
        sleep: Sleep = asyncio.sleep,
        name: str = "admin",
    ) -> None:
        self._connect = connect
        self.retry_interval = retry_interval
        self._sleep = sleep
        self.name = name

    async def try_acquire(self) -> AdminConnection:
        """Make a single connection attempt.

        Raises:
            ConnectError: If the admin interface cannot be reached.
        """
        conn = await self._connect()
        await logger.ainfo("admin_connected", owner=self.name)
        return conn

    async def acquire(self) -> AdminConnection:
        """Return a connection, blocking until the admin interface answers."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self.try_acquire()
            except ConnectError as exc:
                await logger.awarning(
                    "admin_connect_failed",
                    owner=self.name,
                    attempt=attempt,
                    retry_in_seconds=self.retry_interval,
                    error=str(exc),
                )
            await self._sleep(self.retry_interval)

    async def release(self, conn: AdminConnection) -> None:
        """Close a connection that is no longer usable."""
        try:
            await conn.close()
        except Exception as exc:
            await logger.adebug(
                "admin_close_failed", owner=self.name, error=str(exc)
            )

    async def replace(self, conn: AdminConnection) -> AdminConnection:
        """Close ``conn`` and block until a fresh connection is available."""
        await self.release(conn)
        return await self.acquire()
