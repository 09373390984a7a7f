"""
Fixed-window rate limiter keyed by caller identity
"""

import time
import threading
from typing import Callable, Dict, Tuple

from .errors import RateLimited


class RateLimiter:
    """Allow ``max_requests`` per ``window_seconds`` for each caller.

    Windows are tracked per identity and evicted once they expire, so the
    table does not grow with every caller ever seen. A sweep runs from
    ``allow`` whenever the table reaches ``sweep_threshold`` entries.
    """

    def __init__(self, max_requests: int = 120, window_seconds: float = 60,
                 clock: Callable[[], float] = time.monotonic, sweep_threshold: int = 1000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.sweep_threshold = sweep_threshold
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def allow(self, identity: str) -> bool:
        """Count one request; False when the caller is over the limit"""
        now = self.clock()
        with self._lock:
            if len(self._windows) >= self.sweep_threshold:
                self._evict(now)
            started, count = self._windows.get(identity, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.max_requests:
                return False
            self._windows[identity] = (started, count + 1)
            return True

    def check(self, identity: str):
        """Like ``allow`` but raises RateLimited"""
        if not self.allow(identity):
            raise RateLimited(f"Rate limit of {self.max_requests} requests per "
                              f"{self.window_seconds:g}s exceeded")

    def evict_expired(self) -> int:
        """Forget windows that have run out; returns how many were dropped"""
        now = self.clock()
        with self._lock:
            return self._evict(now)

    def _evict(self, now: float) -> int:
        expired = [key for key, (started, _) in self._windows.items()
                   if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self):
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
