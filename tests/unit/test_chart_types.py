"""ledgerstats: Tests for chart value types."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from ledgerstats.charts.types import ChartKind, DateValue


class TestDateValue:
    def test_from_row_accepts_text_values(self) -> None:
        value = DateValue.from_row((date(2022, 11, 9), "3"))

        assert value == DateValue(date=date(2022, 11, 9), value="3")

    def test_from_row_normalises_numbers_and_datetimes(self) -> None:
        big = Decimal("123456789012345678901234567890")

        from_decimal = DateValue.from_row((datetime(2022, 11, 10, 23, 59), big))
        from_int = DateValue.from_row(("2022-11-11", 6))

        assert from_decimal.date == date(2022, 11, 10)
        assert from_decimal.value == "123456789012345678901234567890"
        assert from_int == DateValue(date=date(2022, 11, 11), value="6")

    def test_large_values_keep_precision(self) -> None:
        value = DateValue.from_row((date(2023, 1, 1), "99999999999999999999999999"))

        assert value.as_decimal() + 1 == Decimal("100000000000000000000000000")

    @pytest.mark.parametrize("bad", ["abc", "NaN", True, None])
    def test_from_row_rejects_non_decimal_values(self, bad: object) -> None:
        with pytest.raises(ValueError):
            DateValue.from_row((date(2023, 1, 1), bad))

    def test_from_row_rejects_wrong_arity(self) -> None:
        with pytest.raises(ValueError):
            DateValue.from_row((date(2023, 1, 1),))

    def test_ordering_is_by_date(self) -> None:
        values = [
            DateValue(date(2022, 11, 12), "1"),
            DateValue(date(2022, 11, 9), "3"),
            DateValue(date(2022, 11, 10), "6"),
        ]

        assert [v.date.day for v in sorted(values)] == [9, 10, 12]

    def test_is_immutable(self) -> None:
        value = DateValue(date(2022, 11, 9), "3")

        with pytest.raises(AttributeError):
            value.value = "4"  # type: ignore[misc]


def test_chart_kind_values() -> None:
    assert ChartKind("LINE") is ChartKind.LINE
    assert ChartKind.COUNTER.value == "COUNTER"
