"""ledgerstats – Chart series storage.

This module persists pre-aggregated chart series in the stats database so
that reads never have to re-scan the ledger. It provides:

- checkpoint lookup (the latest persisted date of a chart);
- an idempotent, atomic batch upsert keyed by ``(chart_id, date)``;
- an atomic whole-series replacement for full recomputes.

Every write runs in a single transaction and locks the chart's row in
``charts`` first, so concurrent writers for the same chart (including
ones in other processes) serialise, and readers see either the old or the
new series, never a partially written or empty one.

Database tables accessed (stats_db via DatabaseManager):
- charts (id, name UNIQUE, chart_type, created_at)
- chart_data (chart_id, date, value, created_at, UNIQUE (chart_id, date))

Thread safety: Thread-safe. Each call acquires its own pooled connection.
"""

from __future__ import annotations

# ============================================================================
# Imports
# ============================================================================

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

import psycopg2

from ledgerstats.charts.errors import ChartNotFound, PersistenceFailure
from ledgerstats.charts.types import ChartKind, DateValue
from ledgerstats.core.database import DatabaseError, DatabaseManager
from ledgerstats.core.logging import get_logger

# ============================================================================
# Module setup
# ============================================================================

logger = get_logger(__name__)

_UPSERT_SQL = """
    INSERT INTO chart_data (chart_id, date, value, created_at)
    VALUES (%s, %s, %s, NOW())
    ON CONFLICT (chart_id, date)
    DO UPDATE SET value = EXCLUDED.value
"""


@dataclass
class ChartStore:
    """Persistence helper for chart series in the stats database.

    Attributes:
        db_manager: DatabaseManager instance for connection management.

    Example:
        >>> store = ChartStore(db_manager)
        >>> chart_id = store.ensure_chart("newTxns", ChartKind.LINE)
        >>> store.upsert("newTxns", [DateValue(date(2022, 11, 9), "3")])
        1
        >>> store.last_date("newTxns")
        datetime.date(2022, 11, 9)
    """

    db_manager: DatabaseManager

    # ========================================================================
    # Public API: chart registration
    # ========================================================================

    def ensure_chart(self, name: str, kind: ChartKind) -> int:
        """Create the ``charts`` row for ``name`` if missing and return its id.

        Raises:
            PersistenceFailure: If the stats database cannot be written.
        """

        insert_sql = """
            INSERT INTO charts (name, chart_type, created_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (name) DO NOTHING
        """
        select_sql = "SELECT id FROM charts WHERE name = %s"

        try:
            with self.db_manager.get_stats_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(insert_sql, (name, kind.value))
                    cursor.execute(select_sql, (name,))
                    row = cursor.fetchone()
                    conn.commit()
                except psycopg2.Error:
                    conn.rollback()
                    raise
                finally:
                    cursor.close()
        except (psycopg2.Error, DatabaseError) as exc:
            logger.error("Failed to register chart '%s': %s", name, exc)
            raise PersistenceFailure(name, str(exc)) from exc

        if row is None:
            # Only possible if the row was deleted between the two statements.
            raise PersistenceFailure(name, "chart row disappeared during registration")

        return int(row[0])

    # ========================================================================
    # Public API: reads
    # ========================================================================

    def last_date(self, name: str) -> Optional[date]:
        """Return the latest persisted date for ``name``, or ``None`` if empty.

        Raises:
            ChartNotFound: If ``name`` has no row in ``charts``.
            PersistenceFailure: If the query fails.
        """

        query = """
            SELECT c.id, MAX(d.date)
            FROM charts c
            LEFT JOIN chart_data d ON d.chart_id = c.id
            WHERE c.name = %s
            GROUP BY c.id
        """

        row = self._fetch(name, query, (name,), many=False)
        if row is None:
            raise ChartNotFound(name)
        return row[1]

    def read_series(self, name: str) -> List[DateValue]:
        """Return the persisted series for ``name`` ordered by date.

        Raises:
            ChartNotFound: If ``name`` has no row in ``charts``.
            PersistenceFailure: If the query fails.
        """

        query = """
            SELECT c.id, d.date, d.value
            FROM charts c
            LEFT JOIN chart_data d ON d.chart_id = c.id
            WHERE c.name = %s
            ORDER BY d.date ASC
        """

        rows = self._fetch(name, query, (name,), many=True)
        if not rows:
            raise ChartNotFound(name)
        return [DateValue(date=row[1], value=row[2]) for row in rows if row[1] is not None]

    # ========================================================================
    # Public API: writes
    # ========================================================================

    def upsert(self, name: str, values: Sequence[DateValue]) -> int:
        """Insert or overwrite ``values`` for ``name`` in one transaction.

        Re-running the same batch leaves the table unchanged, which makes
        retries after a failure safe.

        Returns:
            Number of rows written.

        Raises:
            ChartNotFound: If ``name`` has no row in ``charts``.
            PersistenceFailure: If any statement fails; nothing is committed.
        """

        if not values:
            return 0
        return self._write(name, values, replace=False)

    def replace(self, name: str, values: Sequence[DateValue]) -> int:
        """Replace the whole series for ``name`` with ``values`` atomically.

        Rows are upserted first and stale dates deleted afterwards inside
        the same transaction, so concurrent readers never see an empty
        series.

        Returns:
            Number of rows written.

        Raises:
            ChartNotFound: If ``name`` has no row in ``charts``.
            PersistenceFailure: If any statement fails; nothing is committed.
        """

        return self._write(name, values, replace=True)

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _fetch(self, name: str, query: str, params: tuple, many: bool):  # type: ignore[no-untyped-def]
        try:
            with self.db_manager.get_stats_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(query, params)
                    result = cursor.fetchall() if many else cursor.fetchone()
                finally:
                    cursor.close()
                    conn.rollback()
        except (psycopg2.Error, DatabaseError) as exc:
            logger.error("Stats read failed for chart '%s': %s", name, exc)
            raise PersistenceFailure(name, str(exc)) from exc
        return result

    def _write(self, name: str, values: Sequence[DateValue], replace: bool) -> int:
        rows = [(value.date, value.value) for value in values]
        missing = False

        try:
            with self.db_manager.get_stats_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(
                        "SELECT id FROM charts WHERE name = %s FOR UPDATE",
                        (name,),
                    )
                    chart_row = cursor.fetchone()
                    if chart_row is None:
                        missing = True
                        conn.rollback()
                    else:
                        chart_id = chart_row[0]
                        if rows:
                            cursor.executemany(
                                _UPSERT_SQL,
                                [(chart_id, day, value) for day, value in rows],
                            )
                        if replace:
                            cursor.execute(
                                "DELETE FROM chart_data "
                                "WHERE chart_id = %s AND date <> ALL(%s::date[])",
                                (chart_id, [day for day, _ in rows]),
                            )
                        conn.commit()
                except psycopg2.Error:
                    conn.rollback()
                    raise
                finally:
                    cursor.close()
        except (psycopg2.Error, DatabaseError) as exc:
            logger.error("Stats write failed for chart '%s': %s", name, exc)
            raise PersistenceFailure(name, str(exc)) from exc

        if missing:
            raise ChartNotFound(name)

        logger.debug(
            "%s %d rows for chart '%s'",
            "Replaced series with" if replace else "Upserted",
            len(rows),
            name,
        )
        return len(rows)
