"""ledgerstats – Single-flight cache for chart computations.

Each chart owns exactly one :class:`SingleFlightCache`. It guarantees that
at most one computation per chart is running at any time; threads that
arrive while a computation is in flight wait for it and receive the same
value or the same exception instead of starting their own.

State machine::

    Empty --owner starts--> InFlight(force_full)
    InFlight --success--> Ready(value, force_full)
    InFlight --failure--> Empty            (failures are never cached)
    Ready --invalidate()--> Empty

Mode rules:

- A full-recompute flight satisfies both full and incremental callers.
- An incremental flight satisfies only incremental callers. A full
  caller that finds one waits for it to finish and then starts its own
  flight, so it never observes an incremental result.
- A ``Ready`` entry is served to incremental callers only; full callers
  always recompute.

Thread safety: Thread-safe. State is guarded by a ``threading.Lock`` and
the shared outcome travels through a ``concurrent.futures.Future``.
"""

from __future__ import annotations

# ============================================================================
# Imports
# ============================================================================

from concurrent.futures import Future, wait
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, Optional, TypeVar

from ledgerstats.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Internal state
# ============================================================================


@dataclass
class _Flight(Generic[T]):
    future: "Future[T]"
    force_full: bool


@dataclass(frozen=True)
class _Ready(Generic[T]):
    value: T
    force_full: bool


# ============================================================================
# Cache
# ============================================================================


class SingleFlightCache(Generic[T]):
    """Memoise one in-progress or completed computation.

    Example:
        >>> cache: SingleFlightCache[int] = SingleFlightCache("newTxns")
        >>> cache.get_or_compute(lambda: 42)
        42
        >>> cache.get_or_compute(lambda: 0)  # served from Ready
        42
        >>> cache.invalidate()
        >>> cache.get_or_compute(lambda: 7)
        7
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._lock = Lock()
        self._in_flight: Optional[_Flight[T]] = None
        self._ready: Optional[_Ready[T]] = None

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def is_in_flight(self) -> bool:
        with self._lock:
            return self._in_flight is not None

    @property
    def has_value(self) -> bool:
        with self._lock:
            return self._ready is not None

    # ========================================================================
    # Public API
    # ========================================================================

    def get_or_compute(self, computation: Callable[[], T], force_full: bool = False) -> T:
        """Return the shared outcome of ``computation``.

        Args:
            computation: Zero-argument callable producing the value. Only
                the thread that becomes the flight owner calls it.
            force_full: Whether the caller requires a full-recompute
                result (see module docstring for the mode rules).

        Returns:
            The computed (or shared, or cached) value.

        Raises:
            Exception: Whatever ``computation`` raised, re-raised in the
                owner and in every thread that joined the same flight.
        """

        while True:
            with self._lock:
                flight = self._in_flight
                if flight is None:
                    if self._ready is not None and not force_full:
                        logger.debug("cache[%s]: serving ready value", self.name)
                        return self._ready.value
                    flight = _Flight(future=Future(), force_full=force_full)
                    self._in_flight = flight
                    break
                joinable = flight.force_full or not force_full

            if joinable:
                logger.debug("cache[%s]: joining in-flight computation", self.name)
                return flight.future.result()

            logger.debug(
                "cache[%s]: full recompute requested while incremental flight running; waiting",
                self.name,
            )
            wait([flight.future])

        return self._run_owned(flight, computation)

    def invalidate(self) -> None:
        """Drop the ``Ready`` value so the next call recomputes.

        An in-flight computation is not affected.
        """

        with self._lock:
            self._ready = None

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _run_owned(self, flight: _Flight[T], computation: Callable[[], T]) -> T:
        try:
            value = computation()
        except BaseException as exc:
            with self._lock:
                self._in_flight = None
                self._ready = None
            flight.future.set_exception(exc)
            raise

        with self._lock:
            self._in_flight = None
            self._ready = _Ready(value=value, force_full=flight.force_full)
        flight.future.set_result(value)
        return value
