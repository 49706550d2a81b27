"""ledgerstats – In-process monitoring metrics.

This module provides a very small, in-process metrics API used by the
chart updater and the update daemon to emit counters and gauges. Values
are kept in memory (latest value per name and tag set); a real metrics
sink can be plugged in later without changing call sites.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Iterable, MutableMapping, Optional

from ledgerstats.core.logging import get_logger
from ledgerstats.core.types import MetricTags


logger = get_logger(__name__)


@dataclass
class MetricPoint:
    """Single metric observation.

    Attributes:
        name: Metric name (e.g. "charts.update.rows").
        value: Numeric value.
        tags: Optional tag mapping (e.g. {"chart": "newTxns"}).
        timestamp: UTC timestamp of the observation.
    """

    name: str
    value: float
    tags: MetricTags = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_latest_metrics: MutableMapping[tuple[str, tuple[tuple[str, str], ...]], MetricPoint] = {}
_lock = Lock()


def _normalise_tags(tags: Optional[MetricTags]) -> tuple[tuple[str, str], ...]:
    if not tags:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in tags.items()))


def record_metric(name: str, value: float, tags: Optional[MetricTags] = None) -> None:
    """Record the latest value for ``name`` under the given tags."""

    key = (name, _normalise_tags(tags))
    point = MetricPoint(name=name, value=float(value), tags=dict(tags or {}))
    with _lock:
        _latest_metrics[key] = point
    logger.debug("metric recorded", extra={"metric_name": name, "value": value, "tags": tags or {}})


def increment_metric(name: str, amount: float = 1.0, tags: Optional[MetricTags] = None) -> float:
    """Add ``amount`` to a counter metric and return the new value."""

    key = (name, _normalise_tags(tags))
    with _lock:
        previous = _latest_metrics.get(key)
        total = (previous.value if previous is not None else 0.0) + float(amount)
        _latest_metrics[key] = MetricPoint(name=name, value=total, tags=dict(tags or {}))
    return total


def get_latest_metrics(prefix: str | None = None) -> Iterable[MetricPoint]:
    """Return the latest recorded metrics, optionally filtered by prefix."""

    with _lock:
        points = list(_latest_metrics.values())

    if prefix is None:
        return points
    return [p for p in points if p.name.startswith(prefix)]


def reset_metrics() -> None:
    """Clear all in-memory metrics (useful in tests)."""

    with _lock:
        _latest_metrics.clear()
