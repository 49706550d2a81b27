"""ledgerstats – Chart update daemon.

This module implements the long-running process that keeps chart series
fresh. Each cycle updates every registered chart in a thread pool, one
task per chart; charts are independent, so a slow or failing chart never
blocks the others. A failed chart is simply retried on the next cycle:
nothing was committed for it, so it restarts from its last checkpoint.

The daemon deliberately contains no chart logic. It builds the registry
once at startup and only dispatches to
:meth:`ledgerstats.charts.registry.ChartRegistry.update`.
"""

from __future__ import annotations

import argparse
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ledgerstats.charts.errors import UpdateError
from ledgerstats.charts.registry import ChartRegistry, build_default_registry
from ledgerstats.core.config import get_config
from ledgerstats.core.database import get_db_manager
from ledgerstats.core.logging import get_logger
from ledgerstats.monitoring.metrics import record_metric


logger = get_logger(__name__)


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class UpdateDaemonConfig:
    """Configuration for the update daemon.

    Attributes:
        interval_seconds: Sleep interval between update cycles.
        workers: Number of threads used to update charts concurrently.
        force_full_first: Run the first cycle as a full recompute.
        charts: Optional subset of chart names to update.
    """

    interval_seconds: int = 600
    workers: int = 4
    force_full_first: bool = False
    charts: List[str] | None = None


# ============================================================================
# Core loop
# ============================================================================


def _update_one(registry: ChartRegistry, name: str, force_full: bool) -> Optional[UpdateError]:
    try:
        registry.update(name, force_full=force_full)
    except UpdateError as exc:
        logger.error("update_daemon: chart '%s' failed: %s", name, exc)
        return exc
    return None


def run_cycle(
    registry: ChartRegistry,
    force_full: bool = False,
    workers: int = 4,
    charts: Optional[Sequence[str]] = None,
) -> Dict[str, Optional[UpdateError]]:
    """Update the selected charts once, concurrently.

    Args:
        registry: Registry to dispatch to.
        force_full: Whether every chart ignores its checkpoint.
        workers: Maximum number of concurrent chart updates.
        charts: Optional subset of chart names; defaults to all.

    Returns:
        Mapping of chart name to ``None`` or the error it raised.

    Raises:
        ChartNotFound: If ``charts`` contains an unknown name.
    """

    names = list(charts) if charts is not None else registry.names()
    for name in names:
        registry.get(name)

    started = time.monotonic()
    with ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="chart-update") as pool:
        futures = {name: pool.submit(_update_one, registry, name, force_full) for name in names}
        outcomes = {name: future.result() for name, future in futures.items()}

    failed = sorted(name for name, error in outcomes.items() if error is not None)
    record_metric("charts.cycle.failed_charts", len(failed))
    record_metric("charts.cycle.duration_seconds", time.monotonic() - started)
    if failed:
        logger.warning("update_daemon: cycle finished with failures: %s", ", ".join(failed))
    else:
        logger.info("update_daemon: cycle finished, %d charts up to date", len(names))
    return outcomes


def run_daemon(registry: ChartRegistry, config: UpdateDaemonConfig) -> None:
    """Run update cycles until interrupted."""

    interval = max(1, int(config.interval_seconds))
    logger.info(
        "update_daemon: starting with interval=%ds workers=%d charts=%s",
        interval,
        config.workers,
        ",".join(config.charts) if config.charts else "*",
    )

    force_full = config.force_full_first
    try:
        while True:
            run_cycle(registry, force_full=force_full, workers=config.workers, charts=config.charts)
            force_full = False
            time.sleep(interval)
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        logger.info("update_daemon: received KeyboardInterrupt, shutting down")


# ============================================================================
# CLI entrypoint
# ============================================================================


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Keep ledger chart series up to date in the stats database.",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single update cycle and exit",
    )
    parser.add_argument(
        "--force-full",
        action="store_true",
        help="Ignore stored checkpoints and recompute series from scratch (first cycle only)",
    )
    parser.add_argument(
        "--chart",
        action="append",
        default=None,
        help="Chart name to update. Can be specified multiple times (default: all)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=None,
        help="Sleep interval between cycles (default: UPDATE_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent chart updates (default: UPDATE_WORKERS)",
    )

    args = parser.parse_args(argv)

    if args.interval_seconds is not None and args.interval_seconds <= 0:
        parser.error("--interval-seconds must be positive")
    if args.workers is not None and args.workers <= 0:
        parser.error("--workers must be positive")

    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entrypoint for the update daemon.

    Example::

        python -m ledgerstats.orchestration.update_daemon --once --chart newTxns
    """

    args = _parse_args(argv)
    app_config = get_config()
    db_manager = get_db_manager()

    registry = build_default_registry(db_manager, app_config)
    config = UpdateDaemonConfig(
        interval_seconds=args.interval_seconds or app_config.update_interval_seconds,
        workers=args.workers or app_config.update_workers,
        force_full_first=args.force_full,
        charts=args.chart,
    )

    try:
        registry.create_all()
        if args.once:
            outcomes = run_cycle(
                registry,
                force_full=config.force_full_first,
                workers=config.workers,
                charts=config.charts,
            )
            return 1 if any(error is not None for error in outcomes.values()) else 0
        run_daemon(registry, config)
        return 0
    finally:
        db_manager.close_all()


if __name__ == "__main__":  # pragma: no cover - manual CLI entry
    raise SystemExit(main())
