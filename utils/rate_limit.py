"""In-memory sliding-window rate limiting for the HTTP layer."""
from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class SlidingWindowLimiter:
    """Allow at most `times` hits per `seconds` for each key.

    State lives in process memory, so limits are per worker process.
    """

    def __init__(self, times: int, seconds: int):
        self._times = times
        self._seconds = seconds
        self._hits: defaultdict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = 60.0

    def hit(self, key: str) -> bool:
        """Record a hit for key; return False when the key is over its budget."""
        now = time.monotonic()
        with self._lock:
            self._maybe_cleanup(now)
            window = self._hits[key]
            while window and now - window[0] >= self._seconds:
                window.popleft()
            if len(window) >= self._times:
                return False
            window.append(now)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        stale = [k for k, v in self._hits.items() if not v or now - v[-1] >= self._seconds]
        for k in stale:
            del self._hits[k]
        self._last_cleanup = now
