"""ledgerstats – Chart value types.

This module defines the core value objects shared by every chart:

- :class:`DateValue` – one point of a daily series. Values are decimals
  carried as text so that large counters never pass through a float.
- :class:`ChartKind` – presentation hint exposed to API consumers.

External dependencies:
- None (standard library only).

Database tables accessed:
- None directly. Series are persisted via :mod:`ledgerstats.charts.store`.

Thread safety: Value objects are immutable; this module is stateless.
"""

from __future__ import annotations

# ============================================================================
# Imports
# ============================================================================

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from ledgerstats.core.types import RawRow

# ============================================================================
# Chart kinds
# ============================================================================


class ChartKind(str, Enum):
    """How a chart's series is meant to be presented.

    - ``LINE`` – one value per day (e.g. new transactions per day).
    - ``COUNTER`` – a running total; consumers usually show the latest
      value only.
    """

    LINE = "LINE"
    COUNTER = "COUNTER"


# ============================================================================
# Core dataclasses
# ============================================================================


def _normalise_value(raw: Any) -> str:
    if isinstance(raw, bool):
        raise ValueError(f"Boolean is not a valid chart value: {raw!r}")
    if isinstance(raw, int):
        return str(raw)
    try:
        number = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Chart value is not a decimal number: {raw!r}") from exc
    if not number.is_finite():
        raise ValueError(f"Chart value must be finite: {raw!r}")
    if isinstance(raw, str):
        return raw.strip()
    return format(number, "f")


def _normalise_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        return date.fromisoformat(raw)
    raise ValueError(f"Cannot interpret {raw!r} as a date")


@dataclass(frozen=True, order=True)
class DateValue:
    """A single point of a chart's daily series.

    Ordering follows ``date`` first, which is unique within one chart's
    series.

    Attributes:
        date: Calendar day the value belongs to.
        value: Decimal number encoded as text (e.g. ``"12345678901234567890"``).
    """

    date: date
    value: str

    @classmethod
    def from_row(cls, row: RawRow) -> "DateValue":
        """Build a :class:`DateValue` from a raw ``(date, value)`` row.

        Dates may be ``date``/``datetime`` objects or ISO strings; values
        may be text, ``int`` or :class:`~decimal.Decimal`.

        Raises:
            ValueError: If the row does not hold a usable date and decimal.
        """

        if len(row) != 2:
            raise ValueError(f"Expected (date, value) row, got {len(row)} columns")
        raw_date, raw_value = row
        return cls(date=_normalise_date(raw_date), value=_normalise_value(raw_value))

    def as_decimal(self) -> Decimal:
        """Return the value as a :class:`~decimal.Decimal`."""

        return Decimal(self.value)
