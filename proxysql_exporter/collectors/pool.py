"""Collector for ProxySQL's per-backend connection pool statistics.

Each row of ``stats_mysql_connection_pool`` describes one backend server
in one hostgroup and becomes a fixed bundle of samples labeled with
``hostgroup`` and ``endpoint`` (``host:port``).  Samples are built fresh on
every call; the collector keeps no state and may run concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import structlog

from proxysql_exporter.connection import AdminConnection, Row
from proxysql_exporter.errors import RowError
from proxysql_exporter.metrics import (
    NAMESPACE,
    MetricKind,
    MetricSample,
    Sink,
    metric_name,
)

logger = structlog.get_logger(__name__)

COLLECTOR_NAME = "connection_pool"

# Latency_ms is exported as latency_us without rescaling; the column name
# and the metric name disagree about the unit.
POOL_QUERY = (
    "SELECT hostgroup, srv_host, srv_port, status, ConnUsed, ConnFree, "
    "ConnOK, ConnERR, Queries, Bytes_data_sent, Bytes_data_recv, Latency_ms "
    "FROM stats_mysql_connection_pool"
)

POOL_COLUMNS = (
    "hostgroup",
    "srv_host",
    "srv_port",
    "status",
    "ConnUsed",
    "ConnFree",
    "ConnOK",
    "ConnERR",
    "Queries",
    "Bytes_data_sent",
    "Bytes_data_recv",
    "Latency_ms",
)

STATUS_ORDINALS: dict[str, int] = {
    "ONLINE": 1,
    "SHUNNED": 2,
    "OFFLINE_SOFT": 3,
    "OFFLINE_HARD": 4,
}


class PoolField(NamedTuple):
    column: str
    name: str
    kind: MetricKind
    help: str


def _field(column: str, field_name: str, kind: MetricKind, help_text: str) -> PoolField:
    return PoolField(
        column, metric_name(NAMESPACE, COLLECTOR_NAME, field_name), kind, help_text
    )


STATUS_FIELD = _field(
    "status",
    "status",
    MetricKind.GAUGE,
    "Backend status: 1=ONLINE, 2=SHUNNED, 3=OFFLINE_SOFT, 4=OFFLINE_HARD",
)

# Emission order after the status sample.
POOL_FIELDS: tuple[PoolField, ...] = (
    _field("ConnUsed", "conn_used", MetricKind.GAUGE, "Connections currently used to send queries to the backend"),
    _field("ConnFree", "conn_free", MetricKind.GAUGE, "Idle connections kept open to the backend"),
    _field("ConnOK", "conn_ok", MetricKind.COUNTER, "Connections established successfully"),
    _field("ConnERR", "conn_err", MetricKind.COUNTER, "Connections that could not be established"),
    _field("Queries", "queries", MetricKind.COUNTER, "Queries routed to the backend"),
    _field("Bytes_data_sent", "bytes_data_sent", MetricKind.COUNTER, "Bytes of query data sent to the backend"),
    _field("Bytes_data_recv", "bytes_data_recv", MetricKind.COUNTER, "Bytes of result data received from the backend"),
    _field("Latency_ms", "latency_us", MetricKind.GAUGE, "Ping latency to the backend as reported by the monitor"),
)

POOL_HELP: dict[str, str] = {
    f.name: f.help for f in (STATUS_FIELD, *POOL_FIELDS)
}


@dataclass(frozen=True)
class ConnectionPoolRow:
    """One backend endpoint's pool state at scrape time."""

    hostgroup: str
    host: str
    port: str
    status: str
    values: dict[str, object]

    @classmethod
    def from_result(cls, row: Row) -> "ConnectionPoolRow":
        """Build a row from a query result tuple in :data:`POOL_COLUMNS` order.

        Raises:
            RowError: If the column count does not match.
        """
        if len(row) != len(POOL_COLUMNS):
            raise RowError(
                f"expected {len(POOL_COLUMNS)} columns, got {len(row)}"
            )
        hostgroup, host, port, status = (str(v) for v in row[:4])
        return cls(
            hostgroup=hostgroup,
            host=host,
            port=port,
            status=status,
            values=dict(zip(POOL_COLUMNS[4:], row[4:])),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def labels(self) -> dict[str, str]:
        return {"hostgroup": self.hostgroup, "endpoint": self.endpoint}

    def status_ordinal(self) -> int:
        """Return the numeric code for :attr:`status`.

        Raises:
            RowError: For a status outside :data:`STATUS_ORDINALS`.
        """
        try:
            return STATUS_ORDINALS[self.status]
        except KeyError:
            raise RowError(
                f"{self.endpoint} in hostgroup {self.hostgroup}: "
                f"unknown status {self.status!r}"
            ) from None


class PoolCollector:
    """Translate ``stats_mysql_connection_pool`` rows into labeled samples."""

    name = COLLECTOR_NAME

    async def collect(self, conn: AdminConnection, sink: Sink) -> None:
        """Query the pool table and pass every sample to ``sink``.

        Raises:
            QueryError: If the query fails.
        """
        rows = await conn.query(POOL_QUERY)
        for result in rows:
            try:
                row = ConnectionPoolRow.from_result(result)
                ordinal = row.status_ordinal()
            except RowError as exc:
                await logger.awarning(
                    "pool_row_skipped", collector=self.name, error=str(exc)
                )
                continue
            await self._emit_row(row, ordinal, sink)

    async def _emit_row(self, row: ConnectionPoolRow, ordinal: int, sink: Sink) -> None:
        labels = row.labels
        sink(
            MetricSample(
                name=STATUS_FIELD.name,
                labels=dict(labels),
                value=float(ordinal),
                kind=STATUS_FIELD.kind,
            )
        )
        for field in POOL_FIELDS:
            raw = row.values[field.column]
            try:
                value = float(raw)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                await logger.awarning(
                    "pool_value_skipped",
                    collector=self.name,
                    metric=field.name,
                    endpoint=row.endpoint,
                    hostgroup=row.hostgroup,
                    value=repr(raw),
                )
                continue
            sink(
                MetricSample(
                    name=field.name,
                    labels=dict(labels),
                    value=value,
                    kind=field.kind,
                )
            )
