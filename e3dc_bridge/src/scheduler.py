"""
Drift-compensated dual-rate scheduler.

Runs a fast cycle (status) and a slow cycle (statistics and batteries) on the
calling thread. Two deadline timestamps are kept; each is advanced by its own
interval from the *previous deadline*, not from "now", so the execution time
of a cycle never accumulates as drift. The slow cycle runs in-line during the
first fast tick at or after its deadline.

After an overrun exactly one tick fires immediately; both deadlines are then
re-anchored to the grid so that a long stall never turns into a burst of
back-to-back catch-up ticks or repeated slow cycles.

Sleeping is done by waiting on the shutdown event with a timeout, so a
SIGTERM/SIGINT handler that sets the event ends the wait immediately.

Any exception raised by a cycle stops the loop: it is logged at error level
naming the cycle and re-raised to the caller.

CHANGELOG:
- 2026-10-18: Re-anchor deadlines after an overrun instead of catching up
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class ShutdownEvent(Protocol):
    """Subset of :class:`threading.Event` used by the scheduler."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: float | None = None) -> bool: ...


class DualRateScheduler:
    """Multiplexes two periodic actions onto one control flow.

    Args:
        fast_interval_s: Seconds between fast ticks (> 0).
        slow_interval_s: Seconds between slow cycles (> 0). Should be
            coarser than the fast interval; divisibility is not required.
        shutdown_event: Set from outside to stop the loop.
        clock: Monotonic clock in seconds. Injected for tests.
    """

    def __init__(
        self,
        *,
        fast_interval_s: float,
        slow_interval_s: float,
        shutdown_event: ShutdownEvent | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if fast_interval_s <= 0 or slow_interval_s <= 0:
            raise ValueError("Scheduler intervals must be > 0")
        self._fast_interval_s = fast_interval_s
        self._slow_interval_s = slow_interval_s
        self._shutdown = shutdown_event if shutdown_event is not None else threading.Event()
        self._clock = clock
        self.ticks = 0
        self.slow_runs = 0
        self.overruns = 0

    @property
    def shutdown_event(self) -> ShutdownEvent:
        return self._shutdown

    def run(
        self,
        fast_action: Callable[[], None],
        slow_action: Callable[[], None],
    ) -> None:
        """Run until the shutdown event is set or an action raises.

        Both actions run on the first tick.

        Raises:
            Exception: Whatever a cycle raised; the loop does not continue.
        """
        logger.info(
            "Scheduler started (fast=%ss, slow=%ss)",
            self._fast_interval_s,
            self._slow_interval_s,
        )
        next_fast = self._clock()
        next_slow = next_fast

        while not self._shutdown.is_set():
            self._run_cycle("fast", fast_action)
            self.ticks += 1
            next_fast += self._fast_interval_s

            if self._clock() >= next_slow:
                self._run_cycle("slow", slow_action)
                self.slow_runs += 1
                next_slow = _next_after(next_slow, self._slow_interval_s, self._clock())

            now = self._clock()
            delay = next_fast - now
            if delay <= 0:
                self.overruns += 1
                logger.warning(
                    "Cycle overrun: tick %d finished %.3fs after the next deadline",
                    self.ticks,
                    -delay,
                )
                # the immediate tick stands in for the last missed grid point
                next_fast = (
                    _next_after(next_fast, self._fast_interval_s, now) - self._fast_interval_s
                )
                continue
            self._shutdown.wait(delay)

        logger.info("Scheduler stopped after %d ticks", self.ticks)

    @staticmethod
    def _run_cycle(name: str, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as exc:
            logger.error("%s cycle failed, stopping: %s", name.capitalize(), exc)
            raise


def _next_after(deadline: float, interval: float, now: float) -> float:
    """Return the first grid point ``deadline + k * interval`` (k >= 1) after *now*."""
    steps = max(1, math.floor((now - deadline) / interval) + 1)
    return deadline + steps * interval
