"""
Cooperative wall-clock budget for batch runs

A batch loop checks the budget once per unit of work and stops issuing new
work when it is exhausted. In-flight requests are never interrupted; the
ceiling should leave room for the slowest single unit under the hosting
platform's request timeout.
"""

import time
from collections.abc import Callable


class Budget:
    """Tracks elapsed time against a fixed ceiling"""

    def __init__(self, ceiling_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ceiling_seconds: Total wall-clock time this run may spend
            clock: Monotonic time source (injectable for tests)
        """
        if ceiling_seconds <= 0:
            raise ValueError("ceiling_seconds must be positive")
        self.ceiling_seconds = ceiling_seconds
        self._clock = clock
        self._started = clock()

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> float:
        """Seconds left, never negative"""
        return max(0.0, self.ceiling_seconds - self.elapsed())

    def exhausted(self) -> bool:
        return self.remaining() <= 0

    def runtime_ms(self) -> str:
        """Elapsed time formatted the way batch responses report it"""
        return f"{int(self.elapsed() * 1000)}ms"
