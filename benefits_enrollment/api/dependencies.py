import os
import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status, Request

from benefits_enrollment.api.security import CSRFTokenStore, IPBlockList
from benefits_enrollment.contracts.interfaces import Actor, ApplicationStore, CacheBackend, RequestContext
from benefits_enrollment.rating.quote_generator import QuoteGenerator
from benefits_enrollment.rating.rating_table import RatingTable
from benefits_enrollment.utils.config_loader import RatingConfig
from benefits_enrollment.utils.rate_limiter import RateLimiter
from benefits_enrollment.workflow.audit import AuditRecorder
from benefits_enrollment.workflow.authorization import AuthorizationGuard
from benefits_enrollment.workflow.progress_controller import ProgressController

logger = logging.getLogger(__name__)

_ALLOWLIST_PATHS = {
    "/",
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/redoc",
}


@dataclass
class Services:
    """Everything a request handler needs, built once per app."""

    store: ApplicationStore
    cache: CacheBackend
    rating_config: RatingConfig
    rating_table: RatingTable
    quote_generator: QuoteGenerator
    guard: AuthorizationGuard
    audit: AuditRecorder
    controller: ProgressController
    csrf_tokens: CSRFTokenStore
    ip_block_list: IPBlockList
    submission_limiter: RateLimiter


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_api_keys():
    keys = os.getenv("API_KEYS", "")
    return [k.strip() for k in keys.split(",") if k.strip()]


def client_ip(request: Request) -> Optional[str]:
    """The peer address. X-Forwarded-For is honoured only through
    ProxyHeadersMiddleware, for peers listed in TRUSTED_PROXIES."""
    return request.client.host if request.client else None


async def api_key_protection(
    request: Request = None,  # keep Request type so FastAPI injects it; default None for direct calls/tests
    x_api_key: str = Header(default=None, alias="X-API-KEY"),
):
    valid_keys = get_api_keys()
    if not valid_keys:
        # Protection is opt-in: no API_KEYS configured means an open API
        return

    debug = os.getenv("API_KEY_DEBUG", "").lower() in ("1", "true", "yes")
    path = request.url.path if request is not None else "<no-request>"
    if debug:
        logger.info("API key check: path=%s header_present=%s", path, bool(x_api_key))

    if request is not None and request.url.path in _ALLOWLIST_PATHS:
        return

    candidate = (x_api_key or "").strip()
    ok = bool(candidate) and any(hmac.compare_digest(candidate, k) for k in valid_keys)
    if debug:
        logger.info("API key check: path=%s ok=%s configured_keys=%d", path, ok, len(valid_keys))

    if not ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
        )


async def ip_block_protection(request: Request):
    services = get_services(request)
    ip = client_ip(request)
    if services.ip_block_list.is_blocked(ip):
        logger.warning("Rejected request from blocked IP %s path=%s", ip, request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


def get_actor(
    request: Request,
    x_user_id: str = Header(default=None, alias="X-User-Id"),
) -> Actor:
    """Resolve the caller from the store on every request; there is no fallback user."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = get_services(request).store.get_user(x_user_id.strip())
    if user is None:
        logger.warning("Unknown user id presented: %s", x_user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return Actor(id=user.id, role=user.role, broker_id=user.broker_id)


def request_context(request: Request) -> RequestContext:
    return RequestContext(ip_address=client_ip(request), user_agent=request.headers.get("User-Agent"))
