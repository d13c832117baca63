"""
Rate limiting utility for submission endpoints
"""
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Rate limiter that enforces a per-key request limit over a time window
    Uses sliding window algorithm
    """

    def __init__(self, max_requests: int, window_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize rate limiter

        Args:
            max_requests: Maximum number of requests allowed per key per window
            window_seconds: Length of the sliding window
            clock: Monotonic time source, injectable for tests
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._request_times: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _cleanup_old_requests(self, times: Deque[float], current_time: float) -> None:
        """Remove requests older than the window"""
        while times and current_time - times[0] >= self.window_seconds:
            times.popleft()

    def _sweep_idle_keys(self, current_time: float) -> None:
        """Drop keys with no request left in the window (at most once per window)"""
        if current_time - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = current_time
        for key in list(self._request_times):
            times = self._request_times[key]
            self._cleanup_old_requests(times, current_time)
            if not times:
                del self._request_times[key]

    def allow(self, key: str) -> bool:
        """
        Record a request for `key` and report whether it is within the limit.
        Rejected requests are not recorded.
        """
        if not self.max_requests:
            return True

        with self._lock:
            current_time = self._clock()
            self._sweep_idle_keys(current_time)
            times = self._request_times.setdefault(key, deque())
            self._cleanup_old_requests(times, current_time)

            if len(times) >= self.max_requests:
                logger.warning("Rate limit reached for %s (%d per %.0fs)", key, self.max_requests, self.window_seconds)
                return False

            times.append(current_time)
            return True
