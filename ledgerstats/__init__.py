"""ledgerstats – incremental daily statistics over a ledger database.

This module re-exports the chart engine entry points for convenience.
"""

from ledgerstats.charts import ChartKind, ChartRegistry, DateValue, UpdateError, build_default_registry
