"""Collector for ProxySQL's global status counters.

``stats_mysql_global`` is a tall name/value table.  Every variable listed
in :data:`STATUS_METRICS` becomes one unlabeled sample; everything else the
admin interface reports is ignored, so new upstream variables never break
collection.
"""

from __future__ import annotations

import structlog

from proxysql_exporter.connection import AdminConnection, Row
from proxysql_exporter.errors import RowError
from proxysql_exporter.metrics import (
    NAMESPACE,
    MetricDescriptor,
    MetricKind,
    MetricSample,
    Sink,
    metric_name,
)

logger = structlog.get_logger(__name__)

COLLECTOR_NAME = "mysql_status"

STATUS_QUERY = "SELECT Variable_Name, Variable_Value FROM stats_mysql_global"

GAUGE = MetricKind.GAUGE
COUNTER = MetricKind.COUNTER

# Backend_query_time_nsec and Query_Processor_time_nsec are per-thread
# accumulators that reset with the proxy; they are not exported.
_STATUS_FIELDS: tuple[tuple[str, MetricKind, str], ...] = (
    ("Active_Transactions", GAUGE, "Client connections currently processing a transaction"),
    ("Client_Connections_aborted", COUNTER, "Client connections that failed or were closed improperly"),
    ("Client_Connections_connected", GAUGE, "Client connections currently connected"),
    ("Client_Connections_created", COUNTER, "Client connections created"),
    ("Com_autocommit", COUNTER, "Queries setting autocommit"),
    ("Com_autocommit_filtered", COUNTER, "Autocommit queries answered without reaching a backend"),
    ("Com_commit", COUNTER, "COMMIT statements executed"),
    ("Com_commit_filtered", COUNTER, "COMMIT statements answered without reaching a backend"),
    ("Com_rollback", COUNTER, "ROLLBACK statements executed"),
    ("Com_rollback_filtered", COUNTER, "ROLLBACK statements answered without reaching a backend"),
    ("ConnPool_memory_bytes", GAUGE, "Memory used by the connection pool in bytes"),
    ("MySQL_Monitor_Workers", GAUGE, "Monitor module worker threads"),
    ("MySQL_Thread_Workers", GAUGE, "MySQL worker threads"),
    ("Queries_backends_bytes_recv", COUNTER, "Bytes received from backends"),
    ("Queries_backends_bytes_sent", COUNTER, "Bytes sent to backends"),
    ("Questions", COUNTER, "Client requests executed"),
    ("SQLite3_memory_bytes", GAUGE, "Memory used by the embedded SQLite in bytes"),
    ("Server_Connections_aborted", COUNTER, "Backend connections that failed or were closed improperly"),
    ("Server_Connections_connected", GAUGE, "Backend connections currently connected"),
    ("Server_Connections_created", COUNTER, "Backend connections created"),
    ("Slow_queries", COUNTER, "Queries slower than mysql-long_query_time"),
)

# Keyed by lowercase field name, in export order.
STATUS_METRICS: dict[str, MetricDescriptor] = {
    field.lower(): MetricDescriptor(
        source_field_name=field,
        name=metric_name(NAMESPACE, COLLECTOR_NAME, field),
        help=help_text,
        kind=kind,
    )
    for field, kind, help_text in _STATUS_FIELDS
}

_BY_SOURCE_FIELD: dict[str, MetricDescriptor] = {
    descriptor.source_field_name: descriptor
    for descriptor in STATUS_METRICS.values()
}


def _parse_value(descriptor: MetricDescriptor, raw: object) -> float:
    try:
        return float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise RowError(
            f"{descriptor.source_field_name}: non-numeric value {raw!r}"
        ) from None


class StatusCollector:
    """Translate ``stats_mysql_global`` rows into status samples.

    Holds no per-run state; one instance serves every polling cycle.
    """

    name = COLLECTOR_NAME

    def translate(self, row: Row) -> MetricSample | None:
        """Map one result row to a sample, or ``None`` if it is not exported.

        Raises:
            RowError: If the row is malformed or its value is not numeric.
        """
        if len(row) < 2:
            raise RowError(f"expected 2 columns, got {len(row)}")
        descriptor = _BY_SOURCE_FIELD.get(row[0])
        if descriptor is None:
            return None
        return descriptor.sample(_parse_value(descriptor, row[1]))

    async def collect(self, conn: AdminConnection, sink: Sink) -> None:
        """Query the status table and pass each exported sample to ``sink``.

        Samples are emitted in result-row order, not table order;
        :class:`~proxysql_exporter.exposition.StatusInstruments` restores
        table order when rendering.

        Raises:
            QueryError: If the query fails; the caller should reconnect.
        """
        rows = await conn.query(STATUS_QUERY)
        for row in rows:
            try:
                sample = self.translate(row)
            except RowError as exc:
                await logger.awarning(
                    "status_row_skipped", collector=self.name, error=str(exc)
                )
                continue
            if sample is not None:
                sink(sample)
