"""
Lightweight in-memory RedisCache replacement for local development.

This implements the small key/value interface used by the CSRF token store
and the IP block list so the FastAPI app can run without a real Redis
instance. Expired entries are dropped on read and swept on every write.
"""

from __future__ import annotations

import heapq
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple


class RedisCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        # key -> (expires_at, data)
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        # (expires_at, key); may hold stale pairs for keys rewritten or deleted
        self._expiry_heap: List[Tuple[float, str]] = []
        self._clock = clock
        self._lock = threading.Lock()

    def _evict_expired(self, now: float) -> None:
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiry_heap)
            entry = self._entries.get(key)
            if entry is not None and entry[0] == expires_at:
                del self._entries[key]

    def set(self, key: str, data: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            expires_at = now + ttl
            self._entries[key] = (expires_at, dict(data))
            heapq.heappush(self._expiry_heap, (expires_at, key))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, data = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return dict(data)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def ping(self) -> bool:
        """
        FastAPI health check calls this; always return True so the API reports
        the cache as "connected" in local/dev mode.
        """
        return True
