"""ledgerstats – Counter chart data sources.

Counter charts store a running total per active day, so the latest row
is the current count. Totals are computed with a window over the whole
history and only the rows after the checkpoint are returned, which keeps
incremental updates consistent with a full recompute.

Database tables accessed (ledger_db, read-only):
- blocks
- transactions
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Tuple

from psycopg2 import sql

from ledgerstats.charts.lines import DailyCountSource, NewBlocks, NewTxns
from ledgerstats.core.types import SqlParams


class CumulativeCountSource(DailyCountSource):
    """Running total of a :class:`DailyCountSource` relation."""

    def build_query(self, checkpoint: Optional[date]) -> Tuple[sql.Composable, SqlParams]:
        params: list[object] = [True]
        outer_where = sql.SQL("")
        if checkpoint is not None:
            outer_where = sql.SQL("WHERE totals.date > %s")
            params.append(checkpoint)

        query = sql.SQL(
            """
            SELECT totals.date, totals.value
            FROM (
                SELECT
                    date(b.timestamp) AS date,
                    (SUM(COUNT(*)) OVER (ORDER BY date(b.timestamp)))::TEXT AS value
                FROM {relation}
                WHERE b.consensus = %s
                GROUP BY date(b.timestamp)
            ) totals
            {outer_where}
            ORDER BY totals.date
            """
        ).format(relation=self.relation(), outer_where=outer_where)
        return query, tuple(params)


class TotalBlocks(CumulativeCountSource, NewBlocks):
    """Total number of consensus blocks as of each day."""

    chart_name = "totalBlocks"


class TotalTxns(CumulativeCountSource, NewTxns):
    """Total number of transactions in consensus blocks as of each day."""

    chart_name = "totalTxns"
