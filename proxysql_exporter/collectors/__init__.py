"""Collectors translating admin interface tables into metric samples."""

from proxysql_exporter.collectors.pool import PoolCollector
from proxysql_exporter.collectors.status import StatusCollector

__all__ = ["PoolCollector", "StatusCollector"]
