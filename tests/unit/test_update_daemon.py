from __future__ import annotations

import threading
from typing import Any, List

import pytest

from ledgerstats.charts.errors import ChartNotFound, PersistenceFailure
from ledgerstats.orchestration import update_daemon


class _FakeRegistry:
    """Minimal registry exposing the calls the daemon relies on."""

    def __init__(self, names: List[str], failing: tuple = ()) -> None:
        self._names = names
        self._failing = set(failing)
        self.updated: List[tuple] = []
        self.created = False
        self._lock = threading.Lock()

    def names(self) -> List[str]:
        return list(self._names)

    def get(self, name: str) -> Any:
        if name not in self._names:
            raise ChartNotFound(name)
        return name

    def update(self, name: str, force_full: bool = False) -> Any:
        with self._lock:
            self.updated.append((name, force_full))
        if name in self._failing:
            raise PersistenceFailure(name, "deadlock detected")
        return None

    def create_all(self) -> None:
        self.created = True


def test_run_cycle_updates_every_chart() -> None:
    registry = _FakeRegistry(["newTxns", "newBlocks", "totalBlocks"])

    outcomes = update_daemon.run_cycle(registry, force_full=False, workers=2)  # type: ignore[arg-type]

    assert outcomes == {"newTxns": None, "newBlocks": None, "totalBlocks": None}
    assert sorted(registry.updated) == [
        ("newBlocks", False),
        ("newTxns", False),
        ("totalBlocks", False),
    ]


def test_run_cycle_reports_failures_without_stopping_others() -> None:
    registry = _FakeRegistry(["newTxns", "newBlocks"], failing=("newTxns",))

    outcomes = update_daemon.run_cycle(registry, workers=2)  # type: ignore[arg-type]

    assert isinstance(outcomes["newTxns"], PersistenceFailure)
    assert outcomes["newBlocks"] is None
    assert len(registry.updated) == 2


def test_run_cycle_rejects_unknown_chart_before_updating() -> None:
    registry = _FakeRegistry(["newTxns"])

    with pytest.raises(ChartNotFound):
        update_daemon.run_cycle(registry, charts=["newTxns", "doesNotExist"])  # type: ignore[arg-type]
    assert registry.updated == []


def test_main_once_runs_single_cycle(monkeypatch: pytest.MonkeyPatch) -> None:
    registry = _FakeRegistry(["newTxns", "newBlocks"])
    closed: List[bool] = []

    class _DummyDB:
        def close_all(self) -> None:
            closed.append(True)

    monkeypatch.setattr(update_daemon, "get_db_manager", lambda: _DummyDB())
    monkeypatch.setattr(update_daemon, "build_default_registry", lambda db, config: registry)

    exit_code = update_daemon.main(["--once", "--force-full", "--chart", "newTxns"])

    assert exit_code == 0
    assert registry.created
    assert registry.updated == [("newTxns", True)]
    assert closed == [True]


def test_main_once_exit_code_on_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    registry = _FakeRegistry(["newTxns"], failing=("newTxns",))

    class _DummyDB:
        def close_all(self) -> None:
            return None

    monkeypatch.setattr(update_daemon, "get_db_manager", lambda: _DummyDB())
    monkeypatch.setattr(update_daemon, "build_default_registry", lambda db, config: registry)

    assert update_daemon.main(["--once"]) == 1


def test_parse_args_rejects_non_positive_workers() -> None:
    with pytest.raises(SystemExit):
        update_daemon._parse_args(["--workers", "0"])
