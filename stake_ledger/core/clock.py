"""Time sources for the staking ledger."""
import threading
import time
from typing import Protocol

from .errors import ClockSkewError

NANOS_PER_SECOND = 1_000_000_000


class Clock(Protocol):
    """Anything that can tell the current time in whole seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock in whole seconds that never goes backwards."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        current = time.time_ns() // NANOS_PER_SECOND
        with self._lock:
            # Hold the high-water mark if the host clock steps back
            if current < self._last:
                current = self._last
            self._last = current
        return current


class ManualClock:
    """Deterministic clock driven by the caller, for tests and simulations."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ClockSkewError(f"Clock cannot start before the epoch: {start}")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move the clock forward and return the new time."""
        if seconds < 0:
            raise ClockSkewError(f"Cannot move time backwards by {-seconds}s")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        """Jump to an absolute timestamp not earlier than the current one."""
        if timestamp < self._now:
            raise ClockSkewError(
                f"Cannot move time backwards: {timestamp} < {self._now}"
            )
        self._now = timestamp
