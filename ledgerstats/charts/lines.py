"""ledgerstats – Line chart data sources.

Line charts hold one value per active day: the number of ledger events of
some kind that happened on that day. Only consensus (canonical) blocks
are counted.

Database tables accessed (ledger_db, read-only):
- blocks
- transactions
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Tuple

from psycopg2 import sql

from ledgerstats.charts.source import SqlDataSource
from ledgerstats.core.types import SqlParams


class DailyCountSource(SqlDataSource):
    """Count rows per ``date(b.timestamp)`` over a relation aliasing ``blocks`` as ``b``."""

    def relation(self) -> sql.Composable:  # pragma: no cover - interface
        raise NotImplementedError

    def build_query(self, checkpoint: Optional[date]) -> Tuple[sql.Composable, SqlParams]:
        params: list[object] = [True]
        where = [sql.SQL("b.consensus = %s")]
        if checkpoint is not None:
            where.append(sql.SQL("date(b.timestamp) > %s"))
            params.append(checkpoint)

        query = sql.SQL(
            """
            SELECT
                date(b.timestamp) AS date,
                COUNT(*)::TEXT AS value
            FROM {relation}
            WHERE {where}
            GROUP BY date
            ORDER BY date
            """
        ).format(relation=self.relation(), where=sql.SQL(" AND ").join(where))
        return query, tuple(params)


class NewTxns(DailyCountSource):
    """Transactions included in consensus blocks, per day."""

    chart_name = "newTxns"

    def relation(self) -> sql.Composable:
        return sql.SQL("{transactions} t JOIN {blocks} b ON t.block_hash = b.hash").format(
            transactions=self.table("transactions"),
            blocks=self.table("blocks"),
        )


class NewBlocks(DailyCountSource):
    """Consensus blocks produced per day."""

    chart_name = "newBlocks"

    def relation(self) -> sql.Composable:
        return sql.SQL("{blocks} b").format(blocks=self.table("blocks"))
