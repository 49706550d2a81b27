"""ledgerstats – Data source contract for chart series.

A data source answers one question for one chart: given the last date
already persisted (the checkpoint), which new ``DateValue`` rows does the
ledger produce? Metric-specific aggregation lives entirely in the
:meth:`SqlDataSource.build_query` implementations; the update algorithm
in :mod:`ledgerstats.charts.updater` stays generic.

Contract for :meth:`DataSource.read_values`:

- only dates strictly after ``checkpoint`` (or every known date if the
  checkpoint is ``None``);
- at most one row per date, ascending;
- days without activity are absent (series are sparse).

Database tables accessed (ledger_db via DatabaseManager, read-only):
- whatever the concrete query selects from (``blocks``,
  ``transactions``) inside the configured ledger schema.

Thread safety: Thread-safe. Each call acquires its own pooled connection.
"""

from __future__ import annotations

# ============================================================================
# Imports
# ============================================================================

import re
from datetime import date
from typing import List, Optional, Protocol, Sequence, Tuple

import psycopg2
from psycopg2 import sql

from ledgerstats.charts.errors import InternalError, SourceUnavailable
from ledgerstats.charts.types import DateValue
from ledgerstats.core.database import DatabaseError, DatabaseManager
from ledgerstats.core.logging import get_logger
from ledgerstats.core.types import SqlParams

logger = get_logger(__name__)

_SCHEMA_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


# ============================================================================
# Identifier validation
# ============================================================================


def validate_schema_name(schema: str, allowlist: Optional[Sequence[str]] = None) -> str:
    """Check that ``schema`` is safe to use as a SQL identifier.

    Schema names are the only dynamic identifiers in ledger queries. They
    must be lower-case PostgreSQL identifiers and, when an allow-list is
    given, be a member of it.

    Args:
        schema: Candidate schema name.
        allowlist: Optional collection of permitted schema names.

    Returns:
        The validated schema name.

    Raises:
        InternalError: If the name is malformed or not allowed.
    """

    if not _SCHEMA_NAME_RE.fullmatch(schema or ""):
        raise InternalError(f"invalid schema name: {schema!r}")
    if allowlist is not None and schema not in allowlist:
        raise InternalError(f"schema {schema!r} is not in the allowed list")
    return schema


# ============================================================================
# Protocol
# ============================================================================


class DataSource(Protocol):
    """Per-chart adapter producing new series rows from the ledger."""

    def read_values(self, checkpoint: Optional[date]) -> List[DateValue]:  # pragma: no cover - interface
        """Return rows dated strictly after ``checkpoint``, ascending.

        Raises:
            SourceUnavailable: If the ledger cannot be queried.
            InternalError: If the query cannot be built or rows are malformed.
        """


# ============================================================================
# SQL-backed base implementation
# ============================================================================


class SqlDataSource:
    """Base class for data sources backed by a single aggregate query.

    Subclasses set :attr:`chart_name` and implement :meth:`build_query`,
    which returns a composed statement and its bound parameters. The
    statement must select exactly two columns: the day and the value as
    text.

    Attributes:
        db_manager: DatabaseManager used to reach the ledger database.
        schema: Validated ledger schema holding ``blocks``/``transactions``.
    """

    chart_name: str = ""

    def __init__(
        self,
        db_manager: DatabaseManager,
        schema: str = "public",
        schema_allowlist: Optional[Sequence[str]] = None,
    ) -> None:
        self.db_manager = db_manager
        self.schema = validate_schema_name(schema, schema_allowlist)

    def table(self, name: str) -> sql.Composed:
        """Return ``schema.name`` as a quoted identifier."""

        return sql.SQL("{}.{}").format(sql.Identifier(self.schema), sql.Identifier(name))

    def build_query(self, checkpoint: Optional[date]) -> Tuple[sql.Composable, SqlParams]:  # pragma: no cover - interface
        raise NotImplementedError

    def read_values(self, checkpoint: Optional[date]) -> List[DateValue]:
        query, params = self.build_query(checkpoint)

        try:
            with self.db_manager.get_ledger_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(query, params)
                    rows = cursor.fetchall()
                finally:
                    cursor.close()
                    # Ledger access is read-only; end the implicit transaction.
                    conn.rollback()
        except (psycopg2.Error, DatabaseError) as exc:
            logger.error("Ledger query failed for chart '%s': %s", self.chart_name, exc)
            raise SourceUnavailable(self.chart_name, str(exc)) from exc

        try:
            values = sorted(DateValue.from_row(row) for row in rows)
        except ValueError as exc:
            raise InternalError(f"malformed ledger row: {exc}", chart=self.chart_name) from exc

        logger.debug(
            "Ledger returned %d rows for chart '%s' (checkpoint=%s)",
            len(values),
            self.chart_name,
            checkpoint,
        )
        return values
