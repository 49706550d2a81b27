"""ledgerstats: Tests for the incremental chart update algorithm.

ChartUpdater is exercised against an in-memory ledger source and an
in-memory store so the update properties (idempotence, incrementality,
full-recompute equivalence, failure behaviour, single-flight) can be
checked without PostgreSQL.
"""

from __future__ import annotations

import threading
import time
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import pytest

from ledgerstats.charts.errors import (
    ChartNotFound,
    InternalError,
    PersistenceFailure,
    SourceUnavailable,
)
from ledgerstats.charts.types import DateValue
from ledgerstats.charts.updater import ChartUpdater, check_new_values
from ledgerstats.monitoring.metrics import get_latest_metrics, reset_metrics


NEW_TXNS = {
    date(2022, 11, 9): "3",
    date(2022, 11, 10): "6",
    date(2022, 11, 11): "6",
    date(2022, 11, 12): "1",
}


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class _MemorySource:
    """Ledger stand-in honouring the data source contract."""

    def __init__(self, daily: Dict[date, str]) -> None:
        self.daily = dict(daily)
        self.checkpoints: List[Optional[date]] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[threading.Event] = None

    def read_values(self, checkpoint: Optional[date]) -> List[DateValue]:
        self.checkpoints.append(checkpoint)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return [
            DateValue(day, value)
            for day, value in sorted(self.daily.items())
            if checkpoint is None or day > checkpoint
        ]


class _MemoryStore:
    """Stats store stand-in with the same transactional guarantees."""

    def __init__(self, charts: Sequence[str] = ("newTxns",)) -> None:
        self.series: Dict[str, Dict[date, str]] = {name: {} for name in charts}
        self.fail_writes = False
        self.writes: List[tuple] = []

    def _chart(self, name: str) -> Dict[date, str]:
        if name not in self.series:
            raise ChartNotFound(name)
        return self.series[name]

    def last_date(self, name: str) -> Optional[date]:
        rows = self._chart(name)
        return max(rows) if rows else None

    def upsert(self, name: str, values: Sequence[DateValue]) -> int:
        rows = self._chart(name)
        if self.fail_writes:
            raise PersistenceFailure(name, "disk full")
        self.writes.append(("upsert", name, list(values)))
        rows.update({v.date: v.value for v in values})
        return len(values)

    def replace(self, name: str, values: Sequence[DateValue]) -> int:
        self._chart(name)
        if self.fail_writes:
            raise PersistenceFailure(name, "disk full")
        self.writes.append(("replace", name, list(values)))
        self.series[name] = {v.date: v.value for v in values}
        return len(values)

    def read_series(self, name: str) -> List[DateValue]:
        return [DateValue(d, v) for d, v in sorted(self._chart(name).items())]


def _updater(source: _MemorySource, store: _MemoryStore, name: str = "newTxns") -> ChartUpdater:
    return ChartUpdater(name=name, source=source, store=store)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Update properties
# ---------------------------------------------------------------------------


class TestChartUpdater:
    def test_first_update_persists_full_history(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()

        result = _updater(source, store).update(force_full=False)

        assert store.read_series("newTxns") == [
            DateValue(date(2022, 11, 9), "3"),
            DateValue(date(2022, 11, 10), "6"),
            DateValue(date(2022, 11, 11), "6"),
            DateValue(date(2022, 11, 12), "1"),
        ]
        assert store.last_date("newTxns") == date(2022, 11, 12)
        assert source.checkpoints == [None]
        assert result.rows_written == 4
        assert result.last_date == date(2022, 11, 12)
        assert result.checkpoint is None

    def test_update_is_idempotent_without_new_activity(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()
        updater = _updater(source, store)

        updater.update()
        before = store.read_series("newTxns")
        result = updater.update()

        assert store.read_series("newTxns") == before
        assert result.rows_written == 0
        assert result.last_date == date(2022, 11, 12)
        assert source.checkpoints == [None, date(2022, 11, 12)]

    def test_incremental_update_appends_only_new_dates(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()
        updater = _updater(source, store)
        updater.update()
        before = store.read_series("newTxns")

        source.daily[date(2022, 11, 13)] = "4"
        source.daily[date(2022, 11, 15)] = "2"
        updater.update()

        after = store.read_series("newTxns")
        assert after[: len(before)] == before
        assert after[len(before):] == [
            DateValue(date(2022, 11, 13), "4"),
            DateValue(date(2022, 11, 15), "2"),
        ]
        assert store.writes[-1] == ("upsert", "newTxns", after[len(before):])

    def test_force_full_reproduces_existing_series(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()
        updater = _updater(source, store)
        updater.update()
        before = store.read_series("newTxns")

        result = updater.update(force_full=True)

        assert store.read_series("newTxns") == before
        assert source.checkpoints[-1] is None
        assert store.writes[-1][0] == "replace"
        assert result.force_full is True

    def test_force_full_corrects_historical_values(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()
        updater = _updater(source, store)
        updater.update()

        # A backfill changes an old day and removes another.
        source.daily[date(2022, 11, 10)] = "7"
        del source.daily[date(2022, 11, 11)]
        updater.update()
        assert store.series["newTxns"][date(2022, 11, 10)] == "6"

        updater.update(force_full=True)
        assert store.series["newTxns"] == {
            date(2022, 11, 9): "3",
            date(2022, 11, 10): "7",
            date(2022, 11, 12): "1",
        }

    def test_source_failure_leaves_checkpoint_unchanged(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()
        updater = _updater(source, store)
        updater.update()

        source.daily[date(2022, 11, 13)] = "4"
        source.error = SourceUnavailable("newTxns", "connection refused")
        with pytest.raises(SourceUnavailable):
            updater.update()
        assert store.last_date("newTxns") == date(2022, 11, 12)

        source.error = None
        updater.update()
        assert store.last_date("newTxns") == date(2022, 11, 13)
        assert source.checkpoints[-2:] == [date(2022, 11, 12), date(2022, 11, 12)]

    def test_store_failure_propagates_and_retry_succeeds(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore()
        updater = _updater(source, store)

        store.fail_writes = True
        with pytest.raises(PersistenceFailure):
            updater.update()
        assert store.last_date("newTxns") is None

        store.fail_writes = False
        updater.update()
        assert store.last_date("newTxns") == date(2022, 11, 12)

    def test_unknown_chart_in_store(self) -> None:
        source = _MemorySource(NEW_TXNS)
        store = _MemoryStore(charts=())

        with pytest.raises(ChartNotFound):
            _updater(source, store).update()
        assert source.checkpoints == []

    def test_contract_violation_is_internal_error(self) -> None:
        class _BadSource(_MemorySource):
            def read_values(self, checkpoint: Optional[date]) -> List[DateValue]:
                return [DateValue(date(2022, 11, 1), "1")]

        store = _MemoryStore()
        store.series["newTxns"] = {date(2022, 11, 5): "2"}

        with pytest.raises(InternalError):
            _updater(_BadSource({}), store).update()
        assert store.series["newTxns"] == {date(2022, 11, 5): "2"}

    def test_records_metrics(self) -> None:
        reset_metrics()
        _updater(_MemorySource(NEW_TXNS), _MemoryStore()).update()

        rows = [p for p in get_latest_metrics("charts.update.rows") if p.tags["chart"] == "newTxns"]
        assert rows and rows[0].value == 4.0

    def test_cache_is_invalidated_after_success(self) -> None:
        source = _MemorySource(NEW_TXNS)
        updater = _updater(source, _MemoryStore())

        updater.update()

        assert not updater.cache.has_value
        assert not updater.cache.is_in_flight


class TestConcurrentUpdates:
    def test_concurrent_updates_share_one_run(self) -> None:
        source = _MemorySource(NEW_TXNS)
        source.gate = threading.Event()
        store = _MemoryStore()
        updater = _updater(source, store)
        results = []
        errors = []

        def run() -> None:
            try:
                results.append(updater.update())
            except Exception as exc:  # noqa: BLE001 - recorded for assertions
                errors.append(exc)

        threads = [threading.Thread(target=run) for _ in range(6)]
        threads[0].start()
        deadline = time.monotonic() + 5
        while not source.checkpoints and time.monotonic() < deadline:
            time.sleep(0.01)
        for thread in threads[1:]:
            thread.start()
        time.sleep(0.2)
        source.gate.set()
        for thread in threads:
            thread.join(timeout=5)

        assert errors == []
        assert len(source.checkpoints) == 1
        assert len(store.writes) == 1
        assert len(results) == 6
        assert all(r is results[0] for r in results)


# ---------------------------------------------------------------------------
# check_new_values
# ---------------------------------------------------------------------------


class TestCheckNewValues:
    def test_accepts_strictly_increasing_dates_after_checkpoint(self) -> None:
        start = date(2022, 11, 9)
        values = [DateValue(start + timedelta(days=i), str(i)) for i in range(1, 4)]

        check_new_values("newTxns", values, start)

    def test_rejects_dates_at_checkpoint(self) -> None:
        with pytest.raises(InternalError, match="at or before checkpoint"):
            check_new_values("newTxns", [DateValue(date(2022, 11, 9), "1")], date(2022, 11, 9))

    def test_rejects_duplicates(self) -> None:
        values = [DateValue(date(2022, 11, 9), "1"), DateValue(date(2022, 11, 9), "2")]

        with pytest.raises(InternalError, match="unordered or duplicate"):
            check_new_values("newTxns", values, None)
