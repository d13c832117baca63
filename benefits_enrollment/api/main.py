"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from benefits_enrollment.api import admin_router, applications_router, quotes_router
from benefits_enrollment.api.dependencies import Services, api_key_protection, ip_block_protection
from benefits_enrollment.api.security import CSRFTokenStore, IPBlockList
from benefits_enrollment.contracts.interfaces import ApplicationStore, CacheBackend, utcnow
from benefits_enrollment.error_handler import ErrorHandler
from benefits_enrollment.errors import EnrollmentError
from benefits_enrollment.rating.quote_generator import QuoteGenerator
from benefits_enrollment.rating.rating_table import RatingTable
from benefits_enrollment.utils.config_loader import RatingConfig, load_rating_config
from benefits_enrollment.utils.rate_limiter import RateLimiter
from benefits_enrollment.workflow.audit import AuditRecorder
from benefits_enrollment.workflow.authorization import AuthorizationGuard
from benefits_enrollment.workflow.progress_controller import ProgressController

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_SUBMISSIONS_PER_HOUR = 10

error_handler = ErrorHandler()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


def _default_store() -> ApplicationStore:
    # Use real Postgres when env is set, else the in-memory stub
    if os.getenv("DATABASE_URL") and _env_flag("USE_POSTGRES_STORE"):
        from benefits_enrollment.database.postgres_real import PostgresDB

        return PostgresDB(connection_string=os.environ["DATABASE_URL"])

    from benefits_enrollment.database.postgres import PostgresDB

    return PostgresDB()


def _default_cache() -> CacheBackend:
    if os.getenv("REDIS_URL"):
        from benefits_enrollment.database.redis_real import RedisCache

        return RedisCache(url=os.environ["REDIS_URL"])

    from benefits_enrollment.database.redis import RedisCache

    return RedisCache()


def build_services(
    store: Optional[ApplicationStore] = None,
    cache: Optional[CacheBackend] = None,
    rating_config: Optional[RatingConfig] = None,
    submissions_per_hour: Optional[int] = None,
) -> Services:
    """Wire the rating engine, workflow and security helpers together."""
    store = store if store is not None else _default_store()
    cache = cache if cache is not None else _default_cache()
    if rating_config is None:
        config_path = os.getenv("RATING_CONFIG_PATH")
        rating_config = load_rating_config(Path(config_path) if config_path else None)
    if submissions_per_hour is None:
        submissions_per_hour = int(os.getenv("SUBMISSIONS_PER_HOUR", DEFAULT_SUBMISSIONS_PER_HOUR))

    rating_table = RatingTable(rating_config)
    guard = AuthorizationGuard()
    audit = AuditRecorder(store)
    return Services(
        store=store,
        cache=cache,
        rating_config=rating_config,
        rating_table=rating_table,
        quote_generator=QuoteGenerator(rating_config, rating_table),
        guard=guard,
        audit=audit,
        controller=ProgressController(store, audit=audit, guard=guard),
        csrf_tokens=CSRFTokenStore(cache),
        ip_block_list=IPBlockList(cache),
        submission_limiter=RateLimiter(submissions_per_hour, window_seconds=3600.0),
    )


def create_app(services: Optional[Services] = None, trusted_proxies: Optional[str] = None) -> FastAPI:
    app = FastAPI(
        title="Benefits Enrollment API",
        description="Census quoting and employer enrollment workflow",
        version="1.0.0",
        dependencies=[Depends(api_key_protection), Depends(ip_block_protection)],
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Only peers listed here may set the client address through X-Forwarded-For
    trusted_proxies = trusted_proxies if trusted_proxies is not None else os.getenv("TRUSTED_PROXIES", "")
    if trusted_proxies.strip():
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=trusted_proxies)

    app.state.services = services or build_services()
    app.state.services.store.create_tables()

    app.include_router(quotes_router.api, prefix="/api/v1")
    app.include_router(applications_router.api, prefix="/api/v1")
    app.include_router(admin_router.api, prefix="/api/v1")

    @app.exception_handler(EnrollmentError)
    async def enrollment_error_handler(request: Request, exc: EnrollmentError):
        body = error_handler.handle_enrollment_error(exc, {"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        body = error_handler.handle_exception(exc, {"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=500, content={"code": body["code"], "message": body["message"]})

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check (store, cache)."""
        svc = app.state.services
        return {
            "status": "healthy",
            "database": {"store": svc.store.ping(), "cache": svc.cache.ping()},
            "audit_failed_writes": svc.audit.failed_writes,
            "timestamp": utcnow().isoformat(),
        }

    return app


app = create_app()
