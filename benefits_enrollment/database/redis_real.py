"""
Real Redis-backed cache for production when REDIS_URL is set.
Implements the same interface as benefits_enrollment.database.redis (in-memory stub).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Redis-backed key/value cache for CSRF tokens and blocked IPs.
    """

    def __init__(self, url: str, prefix: str = "benefits") -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def set(self, key: str, data: Dict[str, Any], ttl: int) -> None:
        payload = json.dumps(data, default=str)
        self._client.setex(self._key(key), ttl, payload)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._client.get(self._key(key))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    def delete(self, key: str) -> None:
        self._client.delete(self._key(key))

    def ping(self) -> bool:
        try:
            return self._client.ping()
        except redis.RedisError:
            return False
