"""
CSRF tokens and the IP block list.

Both keep their state in the injected cache (in-memory or redis) with an
explicit TTL so entries expire on their own and nothing lives in module
globals.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Optional

from benefits_enrollment.contracts.interfaces import CacheBackend

logger = logging.getLogger(__name__)

CSRF_TTL_SECONDS = 30 * 60
IP_BLOCK_TTL_SECONDS = 60 * 60


class CSRFTokenStore:
    def __init__(self, cache: CacheBackend, ttl_seconds: int = CSRF_TTL_SECONDS) -> None:
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"csrf:{session_id}"

    def issue(self, session_id: str) -> str:
        token = secrets.token_hex(32)
        self.cache.set(self._key(session_id), {"token": token}, ttl=self.ttl_seconds)
        return token

    def validate(self, session_id: Optional[str], token: Optional[str]) -> bool:
        if not session_id or not token:
            return False
        stored = self.cache.get(self._key(session_id))
        if not stored:
            return False
        return hmac.compare_digest(str(stored.get("token", "")), token)


class IPBlockList:
    def __init__(self, cache: CacheBackend, default_ttl: int = IP_BLOCK_TTL_SECONDS) -> None:
        self.cache = cache
        self.default_ttl = default_ttl

    @staticmethod
    def _key(ip_address: str) -> str:
        return f"ip_block:{ip_address}"

    def block(self, ip_address: str, reason: str = "", ttl: Optional[int] = None) -> None:
        logger.warning("Blocking IP %s for %ss: %s", ip_address, ttl or self.default_ttl, reason)
        self.cache.set(self._key(ip_address), {"reason": reason}, ttl=ttl or self.default_ttl)

    def unblock(self, ip_address: str) -> None:
        self.cache.delete(self._key(ip_address))

    def is_blocked(self, ip_address: Optional[str]) -> bool:
        if not ip_address:
            return False
        return self.cache.get(self._key(ip_address)) is not None

