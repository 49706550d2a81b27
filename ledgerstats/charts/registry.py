"""ledgerstats – Chart registry.

The registry maps chart names to :class:`Chart` instances and dispatches
update requests to them. It is built explicitly at startup (see
:func:`build_default_registry`) and passed to whoever needs it; there is
no process-wide registry.

The only state held here is the name → chart mapping. Charts update
independently and share no locks; per-chart serialisation is provided by
each chart's own cache.
"""

from __future__ import annotations

# ============================================================================
# Imports
# ============================================================================

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Type

from ledgerstats.charts.chart import Chart
from ledgerstats.charts.counters import TotalBlocks, TotalTxns
from ledgerstats.charts.errors import ChartNotFound, UpdateError
from ledgerstats.charts.lines import NewBlocks, NewTxns
from ledgerstats.charts.source import SqlDataSource
from ledgerstats.charts.store import ChartStore
from ledgerstats.charts.types import ChartKind
from ledgerstats.charts.updater import UpdateResult
from ledgerstats.core.config import LedgerStatsConfig
from ledgerstats.core.database import DatabaseManager
from ledgerstats.core.logging import get_logger

logger = get_logger(__name__)


# Built-in charts in registration order.
BUILTIN_CHARTS: Sequence[tuple[Type[SqlDataSource], ChartKind]] = (
    (NewTxns, ChartKind.LINE),
    (NewBlocks, ChartKind.LINE),
    (TotalBlocks, ChartKind.COUNTER),
    (TotalTxns, ChartKind.COUNTER),
)


# ============================================================================
# Registry
# ============================================================================


class ChartRegistry:
    """Name → chart mapping with update dispatch.

    Example:
        >>> registry = build_default_registry(db_manager, config)
        >>> registry.create_all()
        >>> registry.update("newTxns")
        UpdateResult(chart='newTxns', ...)
    """

    def __init__(self, charts: Iterable[Chart]) -> None:
        self._charts: Dict[str, Chart] = {}
        for chart in charts:
            if chart.name in self._charts:
                raise ValueError(f"Duplicate chart name: {chart.name}")
            self._charts[chart.name] = chart

    def __contains__(self, name: object) -> bool:
        return name in self._charts

    def __len__(self) -> int:
        return len(self._charts)

    def names(self) -> List[str]:
        """Registered chart names in registration order."""

        return list(self._charts)

    def get(self, name: str) -> Chart:
        """Return the chart called ``name``.

        Raises:
            ChartNotFound: If no chart with that name is registered.
        """

        try:
            return self._charts[name]
        except KeyError:
            raise ChartNotFound(name) from None

    def update(self, name: str, force_full: bool = False) -> UpdateResult:
        """Resolve ``name`` and run its update.

        Raises:
            ChartNotFound: If ``name`` is unknown; no store access happens.
            UpdateError: Whatever the chart's update raised.
        """

        return self.get(name).update(force_full=force_full)

    def create_all(self) -> None:
        """Ensure every registered chart has its row in the store."""

        for chart in self._charts.values():
            chart.create()
            logger.debug("Chart '%s' (%s) registered in store", chart.name, chart.kind.value)

    def update_all(
        self,
        force_full: bool = False,
        names: Optional[Sequence[str]] = None,
    ) -> Mapping[str, Optional[UpdateError]]:
        """Update charts one after another, isolating failures.

        A failing chart does not stop the others. Failures are logged and
        returned so the caller decides what to do with them.

        Args:
            force_full: Passed to every chart update.
            names: Optional subset of chart names; defaults to all.

        Returns:
            Mapping of chart name to ``None`` on success or the raised
            :class:`UpdateError`.

        Raises:
            ChartNotFound: If ``names`` contains an unknown chart (checked
                before any update runs).
        """

        targets = [self.get(name) for name in names] if names is not None else list(self._charts.values())
        outcomes: Dict[str, Optional[UpdateError]] = {}
        for chart in targets:
            try:
                chart.update(force_full=force_full)
            except UpdateError as exc:
                logger.error("Chart '%s' update failed: %s", chart.name, exc)
                outcomes[chart.name] = exc
            else:
                outcomes[chart.name] = None
        return outcomes


# ============================================================================
# Startup construction
# ============================================================================


def build_default_registry(
    db_manager: DatabaseManager,
    config: LedgerStatsConfig,
) -> ChartRegistry:
    """Build the registry of built-in charts.

    Args:
        db_manager: Shared database manager for ledger and stats access.
        config: Configuration providing the ledger schema, its allow-list
            and the optional ``ENABLED_CHARTS`` filter.

    Returns:
        A :class:`ChartRegistry` with one chart (and one cache) per
        enabled built-in.

    Raises:
        ChartNotFound: If ``ENABLED_CHARTS`` names an unknown chart.
        InternalError: If the ledger schema fails validation.
    """

    store = ChartStore(db_manager)
    available = {source_cls.chart_name: (source_cls, kind) for source_cls, kind in BUILTIN_CHARTS}

    enabled = config.enabled_charts or list(available)
    for name in enabled:
        if name not in available:
            raise ChartNotFound(name)

    charts = []
    for name in enabled:
        source_cls, kind = available[name]
        source = source_cls(
            db_manager,
            schema=config.ledger_schema,
            schema_allowlist=config.ledger_schema_allowlist,
        )
        charts.append(Chart(name=name, kind=kind, source=source, store=store))

    logger.info("Chart registry built with %d charts: %s", len(charts), ", ".join(enabled))
    return ChartRegistry(charts)
