"""Exception hierarchy for the exporter.

Connectivity problems surface as :class:`ConnectError` or
:class:`QueryError` and are recovered by reconnecting.  :class:`RowError`
never leaves a collector: the offending row or value is logged and
skipped.
"""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConnectError(ExporterError):
    """Opening a connection to the admin interface failed."""


class QueryError(ExporterError):
    """A query against the admin interface failed or timed out."""


class RowError(ExporterError):
    """A result row could not be translated into metric samples."""
