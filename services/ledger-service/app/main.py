"""FastAPI application wiring for the ledger service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from anyio import to_thread
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool
from redis import Redis

from .api.bookkeeping import router as bookkeeping_router
from .api.errors import install_error_handlers
from .api.gateway import TenantResolutionMiddleware
from .api.routes import router as v1_router
from .config import Settings, get_settings
from .container import build_services
from .repository import CATEGORIES, EXPENSES, USERS, IdentityRepository, PostgresRecordBackend, TenantRepository
from .security.rate_limiter import AttemptLimiter, SlidingWindowRateLimiter
from .security.redis_rate_limiter import RedisSlidingWindowRateLimiter
from .security.tokens import TokenIssuer

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

token_issuer = TokenIssuer.from_settings(settings)


def build_rate_limiter(settings: Settings) -> AttemptLimiter:
    """Instantiate the configured limiter backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = Redis.from_url(settings.redis_url)
            # an unreachable server falls back to the in-memory limiter below
            client.ping()
            logger.info("rate limiter configured for redis backend at %s", settings.redis_url)
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        except Exception as exc:  # pragma: no cover - depends on a live redis
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)

    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the Postgres pool, worker threads and services for the app lifecycle."""
    # sync handlers and PBKDF2 run on this pool; widen it so login bursts do not starve other requests
    to_thread.current_default_thread_limiter().total_tokens = settings.threadpool_size

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    app.state.pool = pool
    app.state.rate_limiter = build_rate_limiter(settings)
    app.state.services = build_services(
        tenants=TenantRepository(pool),
        identities=IdentityRepository(pool),
        user_backend=PostgresRecordBackend(pool, USERS),
        category_backend=PostgresRecordBackend(pool, CATEGORIES),
        expense_backend=PostgresRecordBackend(pool, EXPENSES),
        issuer=token_issuer,
    )
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(TenantResolutionMiddleware, issuer=token_issuer)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)
install_error_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
app.include_router(bookkeeping_router)
