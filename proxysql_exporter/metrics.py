"""Metric value types and the exporter's own Prometheus instruments.

:class:`MetricSample` is what the collectors emit; :class:`ExporterMetrics`
holds the counters and gauges describing the exporter itself (scrape
outcomes, HTTP requests).  Nothing here touches the process-global
``prometheus_client`` registry: instruments are bound to the registry
passed in by the application.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

NAMESPACE = "proxysql"


class MetricKind(str, enum.Enum):
    """Exposition type of a metric."""

    GAUGE = "gauge"
    COUNTER = "counter"
    UNTYPED = "untyped"


def metric_name(namespace: str, subsystem: str, field_name: str) -> str:
    """Build a fully-qualified, lowercase metric name."""
    return "_".join(part for part in (namespace, subsystem, field_name) if part).lower()


@dataclass(frozen=True)
class MetricSample:
    """One labeled value ready for exposition.

    Attributes:
        name: Fully-qualified metric name, always lowercase.
        labels: Ordered label set; keys are unique.
        value: Sample value.
        kind: Whether the value is a gauge, a counter, or untyped.
    """

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0
    kind: MetricKind = MetricKind.UNTYPED


@dataclass(frozen=True)
class MetricDescriptor:
    """Static metadata binding one source field to an exported metric.

    Attributes:
        source_field_name: Field name exactly as the admin interface
            reports it (case-sensitive).
        name: Fully-qualified exported name.
        help: Help text shown in the exposition.
        kind: Exposition type.

    Raises:
        ValueError: If ``name`` is not lowercase.  Descriptor tables are
            built at import time, so a bad entry stops the process before
            it serves a single scrape.
    """

    source_field_name: str
    name: str
    help: str
    kind: MetricKind

    def __post_init__(self) -> None:
        if self.name != self.name.lower():
            raise ValueError(f"metric name {self.name!r} must be lowercase")

    def sample(self, value: float) -> MetricSample:
        return MetricSample(name=self.name, labels={}, value=value, kind=self.kind)


Sink = Callable[[MetricSample], None]


class ExporterMetrics:
    """Instruments describing the exporter's own behaviour.

    Parameters:
        registry: Registry the instruments are registered on.
        namespace: Metric name prefix.
    """

    def __init__(
        self, registry: CollectorRegistry, namespace: str = NAMESPACE
    ) -> None:
        self.up = Gauge(
            f"{namespace}_up",
            "Whether the last status poll of the ProxySQL admin interface succeeded (1=up, 0=down)",
            registry=registry,
        )
        self.scrapes_total = Counter(
            f"{namespace}_exporter_scrapes_total",
            "Collection runs against the admin interface",
            ["collector"],
            registry=registry,
        )
        self.scrape_errors_total = Counter(
            f"{namespace}_exporter_scrape_errors_total",
            "Collection runs that failed to query the admin interface",
            ["collector"],
            registry=registry,
        )
        self.last_scrape_error = Gauge(
            f"{namespace}_exporter_last_scrape_error",
            "Whether the last collection run failed (1=failed, 0=ok)",
            ["collector"],
            registry=registry,
        )
        self.last_scrape_duration = Gauge(
            f"{namespace}_exporter_last_scrape_duration_seconds",
            "Duration of the last collection run in seconds",
            ["collector"],
            registry=registry,
        )
        self.request_count = Counter(
            f"{namespace}_exporter_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=registry,
        )
        self.request_duration = Histogram(
            f"{namespace}_exporter_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=(
                0.01, 0.025, 0.05, 0.1, 0.25,
                0.5, 1.0, 2.5, 5.0, 10.0,
            ),
            registry=registry,
        )

    def record_scrape(self, collector: str, duration: float, failed: bool) -> None:
        """Update the scrape outcome instruments for one collection run."""
        self.scrapes_total.labels(collector=collector).inc()
        if failed:
            self.scrape_errors_total.labels(collector=collector).inc()
        self.last_scrape_error.labels(collector=collector).set(1 if failed else 0)
        self.last_scrape_duration.labels(collector=collector).set(duration)
