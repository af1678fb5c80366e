"""
Time source for polling loops.

Adapters that wait on remote tasks take a Clock so tests can advance time
without sleeping.
"""

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Monotonic time source with a blocking sleep."""

    @abstractmethod
    def now(self) -> float:
        """Seconds on a monotonic scale."""
        pass

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        pass


class SystemClock(Clock):
    """Real wall-clock time."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)
