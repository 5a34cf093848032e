"""Bridge between :class:`MetricSample` streams and ``prometheus_client``.

Status samples land in :class:`StatusInstruments`, a custom collector with
one pre-registered slot per status descriptor whose values persist until
overwritten.  Pool samples only live for one scrape and are rendered
through a throwaway registry by :func:`render`.
"""

from __future__ import annotations

import threading
from typing import Iterable, Iterator, Mapping

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    Metric,
    UnknownMetricFamily,
)
from prometheus_client.registry import Collector

from proxysql_exporter.metrics import MetricDescriptor, MetricKind, MetricSample

_FAMILIES = {
    MetricKind.GAUGE: GaugeMetricFamily,
    MetricKind.COUNTER: CounterMetricFamily,
    MetricKind.UNTYPED: UnknownMetricFamily,
}


def sample_families(
    samples: Iterable[MetricSample], help_text: Mapping[str, str]
) -> list[Metric]:
    """Group samples by name into metric families, keeping first-seen order."""
    families: dict[str, Metric] = {}
    for sample in samples:
        family = families.get(sample.name)
        if family is None:
            family = _FAMILIES[sample.kind](
                sample.name,
                help_text.get(sample.name, ""),
                labels=list(sample.labels),
            )
            families[sample.name] = family
        family.add_metric(list(sample.labels.values()), sample.value)
    return list(families.values())


class SampleCollector(Collector):
    """Expose a fixed list of samples."""

    def __init__(
        self, samples: Iterable[MetricSample], help_text: Mapping[str, str]
    ) -> None:
        self._samples = list(samples)
        self._help = help_text

    def collect(self) -> Iterator[Metric]:
        yield from sample_families(self._samples, self._help)


class StatusInstruments(Collector):
    """Pre-registered status instruments, one per descriptor.

    A slot is exposed once it has received a value and keeps that value
    until the next update.

    Parameters:
        descriptors: Descriptor table, in exposition order.
    """

    def __init__(self, descriptors: Mapping[str, MetricDescriptor]) -> None:
        self._descriptors = {d.name: d for d in descriptors.values()}
        self._help = {d.name: d.help for d in self._descriptors.values()}
        self._values: dict[str, float] = {}
        self._lock = threading.Lock()

    def update(self, sample: MetricSample) -> None:
        """Store ``sample`` in its instrument slot.

        Raises:
            KeyError: If no descriptor is registered under ``sample.name``.
        """
        if sample.name not in self._descriptors:
            raise KeyError(f"no status instrument named {sample.name!r}")
        with self._lock:
            self._values[sample.name] = sample.value

    def samples(self) -> list[MetricSample]:
        """Return the current value of every populated slot."""
        with self._lock:
            values = dict(self._values)
        return [
            descriptor.sample(values[name])
            for name, descriptor in self._descriptors.items()
            if name in values
        ]

    def collect(self) -> Iterator[Metric]:
        yield from sample_families(self.samples(), self._help)


def render(
    registry: CollectorRegistry,
    samples: Iterable[MetricSample] = (),
    help_text: Mapping[str, str] | None = None,
) -> bytes:
    """Render ``registry`` followed by one-off ``samples`` in text format."""
    scrape = CollectorRegistry(auto_describe=False)
    scrape.register(SampleCollector(samples, help_text or {}))
    return generate_latest(registry) + generate_latest(scrape)
