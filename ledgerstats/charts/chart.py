"""ledgerstats – Chart objects.

A :class:`Chart` binds a name and a :class:`ChartKind` to the updater
that maintains its series. Charts are created once at startup by the
registry; each owns its updater and therefore its single-flight cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledgerstats.charts.source import DataSource
from ledgerstats.charts.store import ChartStore
from ledgerstats.charts.types import ChartKind
from ledgerstats.charts.updater import ChartUpdater, UpdateResult


@dataclass
class Chart:
    """A named, persisted time series.

    Attributes:
        name: Unique chart identifier (registry key and store namespace).
        kind: Presentation kind exposed to consumers.
        source: Data source supplying the chart's rows.
        store: Store holding the chart's series.
    """

    name: str
    kind: ChartKind
    source: DataSource
    store: ChartStore
    updater: ChartUpdater = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.updater = ChartUpdater(name=self.name, source=self.source, store=self.store)

    def create(self) -> int:
        """Make sure the store knows this chart; return its store id."""

        return self.store.ensure_chart(self.name, self.kind)

    def update(self, force_full: bool = False) -> UpdateResult:
        """Update the chart's series; see :meth:`ChartUpdater.update`."""

        return self.updater.update(force_full=force_full)
