"""ledgerstats – Chart update engine.

This package maintains pre-aggregated daily series derived from the
ledger database:

- :mod:`ledgerstats.charts.types` – ``DateValue`` and ``ChartKind``.
- :mod:`ledgerstats.charts.cache` – per-chart single-flight cache.
- :mod:`ledgerstats.charts.source` – data source contract and SQL base.
- :mod:`ledgerstats.charts.store` – checkpoint lookup and atomic upserts.
- :mod:`ledgerstats.charts.updater` – the incremental update algorithm.
- :mod:`ledgerstats.charts.registry` – name → chart dispatch.

Higher-level code should generally import :class:`ChartRegistry` and
:func:`build_default_registry` from this package.
"""

from .cache import SingleFlightCache
from .chart import Chart
from .errors import (
    ChartNotFound,
    InternalError,
    PersistenceFailure,
    SourceUnavailable,
    UpdateError,
)
from .registry import ChartRegistry, build_default_registry
from .store import ChartStore
from .types import ChartKind, DateValue
from .updater import ChartUpdater, UpdateResult

__all__ = [
    "Chart",
    "ChartKind",
    "ChartNotFound",
    "ChartRegistry",
    "ChartStore",
    "ChartUpdater",
    "DateValue",
    "InternalError",
    "PersistenceFailure",
    "SingleFlightCache",
    "SourceUnavailable",
    "UpdateError",
    "UpdateResult",
    "build_default_registry",
]
