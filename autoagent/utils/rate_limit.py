"""In-memory sliding-window rate limiting per key."""

from __future__ import annotations

import time
from collections import defaultdict
from threading import Lock
from typing import Callable


class RateLimiter:
    """
    Sliding-window rate limiter per key (e.g. "dequeue" or a peer id).
    Thread-safe, in-memory.

    With max_requests=1 it acts as a minimum-interval gate: a request is
    allowed only once window_seconds have elapsed since the last allowed one.

    Example:
        >>> limiter = RateLimiter(max_requests=1, window_seconds=60.0)
        >>> limiter.allow("dequeue")
        True
        >>> limiter.allow("dequeue")
        False
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds < 0:
            raise ValueError("window_seconds must be non-negative")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._counts: dict[str, list[float]] = defaultdict(list)
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> None:
        cutoff = now - self.window_seconds
        self._counts[key] = [t for t in self._counts[key] if t > cutoff]

    def allow(self, key: str) -> bool:
        """Return True if the request is allowed (and record it), False if rate limited."""
        with self._lock:
            now = self._clock()
            self._prune(key, now)
            if len(self._counts[key]) >= self.max_requests:
                return False
            self._counts[key].append(now)
            return True

    def retry_after(self, key: str) -> float:
        """Seconds until the next request for key would be allowed (0 if allowed now)."""
        with self._lock:
            now = self._clock()
            self._prune(key, now)
            stamps = self._counts[key]
            if len(stamps) < self.max_requests:
                return 0.0
            return max(0.0, stamps[0] + self.window_seconds - now)
