"""
Request rate limiting for the ingestion API

Call sites depend only on RateLimiter.allow(key). The in-memory
implementation keeps per-process state, so limits reset on restart and
are not shared between instances; a multi-instance deployment needs a
RateLimiter backed by a shared store.
"""

import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Protocol


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool:
        """Consume one request for key; False when the key is over its limit"""
        ...


class InMemoryRateLimiter:
    """Sliding-window limiter: at most `limit` requests per `window_seconds` per key"""

    CLEANUP_INTERVAL = 300.0

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        cutoff = now - self.window_seconds

        with self._lock:
            self._cleanup(now, cutoff)

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.limit:
                return False

            hits.append(now)
            return True

    def reset_in(self, key: str) -> float:
        """Seconds until key can make another request (0 if it can now)"""
        now = self._clock()
        with self._lock:
            hits = self._hits.get(key)
            if not hits or len(hits) < self.limit:
                return 0.0
            return max(0.0, hits[0] + self.window_seconds - now)

    def _cleanup(self, now: float, cutoff: float) -> None:
        # Drop idle keys so the map doesn't grow with every client ever seen
        if now - self._last_cleanup < self.CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        for key in list(self._hits):
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if not hits:
                del self._hits[key]
