"""ledgerstats – Incremental chart update algorithm.

:class:`ChartUpdater` is the one update routine shared by every chart.
A chart differs from another only in its :class:`DataSource`; checkpoint
handling, single-flight deduplication and persistence are common.

Workflow of :meth:`ChartUpdater.update`:

1. Resolve the checkpoint: ``None`` for a full recompute, otherwise the
   latest persisted date from the store.
2. Ask the data source for rows strictly after the checkpoint.
3. Persist them: upsert for incremental updates, atomic replacement for
   full recomputes.
4. Invalidate the chart's cache so the next cycle fetches fresh data.

Steps 1–3 run as one computation inside the chart's
:class:`SingleFlightCache`: concurrent callers share a single run and its
outcome, and two runs for the same chart never overlap. On any failure
nothing is committed, so the checkpoint stays where it was and the next
call retries from the same point.
"""

from __future__ import annotations

# ============================================================================
# Imports
# ============================================================================

import time
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from ledgerstats.charts.cache import SingleFlightCache
from ledgerstats.charts.errors import InternalError, UpdateError
from ledgerstats.charts.source import DataSource
from ledgerstats.charts.store import ChartStore
from ledgerstats.charts.types import DateValue
from ledgerstats.core.logging import get_logger
from ledgerstats.monitoring.metrics import increment_metric, record_metric

logger = get_logger(__name__)


# ============================================================================
# Result type
# ============================================================================


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of one successful chart update.

    Attributes:
        chart: Chart name.
        force_full: Whether the run ignored the stored checkpoint.
        checkpoint: Date the run started after (``None`` for full runs or
            empty charts).
        rows_written: Number of rows upserted.
        last_date: Latest date in the written batch, if any.
    """

    chart: str
    force_full: bool
    checkpoint: Optional[date]
    rows_written: int
    last_date: Optional[date]


def check_new_values(
    chart: str,
    values: Sequence[DateValue],
    checkpoint: Optional[date],
) -> None:
    """Validate that ``values`` honour the data source contract.

    Raises:
        InternalError: If dates are unordered, duplicated or not after
            ``checkpoint``.
    """

    previous: Optional[date] = None
    for value in values:
        if checkpoint is not None and value.date <= checkpoint:
            raise InternalError(
                f"data source returned {value.date} at or before checkpoint {checkpoint}",
                chart=chart,
            )
        if previous is not None and value.date <= previous:
            raise InternalError(
                f"data source returned unordered or duplicate date {value.date}",
                chart=chart,
            )
        previous = value.date


# ============================================================================
# Updater
# ============================================================================


@dataclass
class ChartUpdater:
    """Run incremental or full updates for one chart.

    Attributes:
        name: Chart name, used as the store key.
        source: Data source producing new rows from the ledger.
        store: Store persisting the chart's series.
        cache: The chart's single-flight cache, created with the updater.
    """

    name: str
    source: DataSource
    store: ChartStore
    cache: SingleFlightCache[UpdateResult] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.cache = SingleFlightCache(self.name)

    def update(self, force_full: bool = False) -> UpdateResult:
        """Bring the persisted series up to date with the ledger.

        Args:
            force_full: Ignore the stored checkpoint and regenerate the
                whole series.

        Returns:
            :class:`UpdateResult` describing the run. Callers that joined
            an in-flight run receive that run's result.

        Raises:
            UpdateError: Any source, store or validation failure. The
                stored series and checkpoint are left unchanged.
        """

        try:
            result = self.cache.get_or_compute(lambda: self._run(force_full), force_full=force_full)
        except UpdateError:
            increment_metric("charts.update.failures", tags={"chart": self.name})
            raise

        # A fresh call must look at the ledger again.
        self.cache.invalidate()
        return result

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _run(self, force_full: bool) -> UpdateResult:
        started = time.monotonic()
        checkpoint = None if force_full else self.store.last_date(self.name)
        logger.info(
            "Updating chart '%s' (force_full=%s, checkpoint=%s)",
            self.name,
            force_full,
            checkpoint,
        )

        try:
            values: List[DateValue] = list(self.source.read_values(checkpoint))
            check_new_values(self.name, values, checkpoint)

            if force_full:
                written = self.store.replace(self.name, values)
            else:
                written = self.store.upsert(self.name, values)
        except UpdateError as exc:
            logger.error("Update of chart '%s' failed: %s", self.name, exc)
            raise

        elapsed = time.monotonic() - started
        last = values[-1].date if values else checkpoint
        record_metric("charts.update.rows", written, tags={"chart": self.name})
        record_metric("charts.update.duration_seconds", elapsed, tags={"chart": self.name})
        logger.info(
            "Chart '%s' updated: %d rows written, last date %s (%.2fs)",
            self.name,
            written,
            last,
            elapsed,
        )

        return UpdateResult(
            chart=self.name,
            force_full=force_full,
            checkpoint=checkpoint,
            rows_written=written,
            last_date=last,
        )
