"""ledgerstats – Chart update error taxonomy.

Every failure that can happen while updating a chart is raised as a
subclass of :class:`UpdateError`. Driver exceptions (``psycopg2.Error``)
are chained as ``__cause__`` so the original database error is never
lost.

- :class:`SourceUnavailable` – reading the ledger failed; retry later.
- :class:`PersistenceFailure` – reading or writing the stats store failed;
  the write transaction was rolled back.
- :class:`ChartNotFound` – unknown chart name; a caller error.
- :class:`InternalError` – invalid input or data that a retry will not fix.
"""

from __future__ import annotations

from typing import Optional


class UpdateError(Exception):
    """Base class for chart update failures."""

    retryable: bool = False


class SourceUnavailable(UpdateError):
    """Raised when the ledger database cannot be read."""

    retryable = True

    def __init__(self, chart: str, message: str) -> None:
        super().__init__(f"ledger read failed for chart '{chart}': {message}")
        self.chart = chart


class PersistenceFailure(UpdateError):
    """Raised when the stats store cannot be read or written."""

    retryable = True

    def __init__(self, chart: str, message: str) -> None:
        super().__init__(f"stats store failure for chart '{chart}': {message}")
        self.chart = chart


class ChartNotFound(UpdateError):
    """Raised when a chart name is not registered or not present in the store."""

    def __init__(self, name: str) -> None:
        super().__init__(f"chart {name} not found")
        self.name = name


class InternalError(UpdateError):
    """Raised for validation and query-construction failures."""

    def __init__(self, message: str, chart: Optional[str] = None) -> None:
        prefix = f"chart '{chart}': " if chart else ""
        super().__init__(f"{prefix}{message}")
        self.chart = chart
