"""
Amora — FastAPI Application Entry Point

- Async lifespan management (DB pool, oracle HTTP client, optional Redis)
- CORS, timeout, and structured-logging middleware
- Service exception handlers
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from amora.api import deps
from amora.config import get_settings
from amora.database import get_engine, get_session_factory
from amora.exceptions import AmoraError, service_exception_handler

settings = get_settings()

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("amora")

# ---------------------------------------------------------------------------
# Active request counter for graceful shutdown
# ---------------------------------------------------------------------------

_active_requests: int = 0

DRAIN_TIMEOUT_SECONDS = 15


async def _drain_active_requests() -> None:
    """Wait until all in-flight requests complete or timeout expires."""
    deadline = time.monotonic() + DRAIN_TIMEOUT_SECONDS
    while _active_requests > 0:
        if time.monotonic() >= deadline:
            logger.warning(
                "drain_timeout_exceeded",
                remaining_requests=_active_requests,
            )
            break
        await asyncio.sleep(0.25)


# ---------------------------------------------------------------------------
# Redis helpers
# ---------------------------------------------------------------------------

async def _connect_redis():
    """Open the shared Redis client, or return ``None`` when not configured."""
    if not settings.REDIS_URL:
        logger.info("redis_skip", reason="REDIS_URL not configured")
        return None

    import redis.asyncio as aioredis

    client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    await client.ping()
    logger.info("redis_connected", url=settings.REDIS_URL)
    return client


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of long-lived resources."""
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    # 1. Database connection pool; a trivial query warms it.
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised")

    # 2. Oracle HTTP client, shared by all scoring batches
    http_client = httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=settings.ORACLE_MAX_CONCURRENCY * 2,
            max_keepalive_connections=settings.ORACLE_MAX_CONCURRENCY,
        ),
        timeout=settings.ORACLE_BATCH_TIMEOUT_SECONDS,
    )

    # 3. Redis (optional)
    redis_client = await _connect_redis()

    deps.configure_clients(http_client, redis_client)
    logger.info(
        "startup_complete",
        oracle_keys=len(settings.gemini_api_keys_list),
        redis=redis_client is not None,
    )

    yield

    logger.info("shutdown_begin")

    await _drain_active_requests()

    deps.configure_clients(None, None)
    await http_client.aclose()
    if redis_client is not None:
        await redis_client.aclose()
        logger.info("redis_closed")

    await engine.dispose()
    logger.info("database_pool_closed")

    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout.

    Ranking recomputation keeps running after a timeout and still fills the
    cache for the next request.
    """

    def __init__(self, app, timeout_seconds: float = 70.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"success": False, "error": "Request timed out", "type": "Timeout"},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        global _active_requests
        start = time.perf_counter()

        _active_requests += 1
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            _active_requests -= 1

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Amora",
    description="Candidate ranking backend for the Amora dating app",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_exception_handler(AmoraError, service_exception_handler)

# -- Middleware (applied in reverse order; last added runs first) ----------- #

app.add_middleware(StructuredLoggingMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -- Health-check endpoints ------------------------------------------------ #


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    """Liveness probe; healthy whenever the process is serving."""
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep() -> dict:
    """Readiness probe: verifies database and, when configured, Redis."""
    result: dict = {
        "status": "healthy",
        "database": "connected",
        "redis": "not_configured",
        "oracle_keys": len(settings.gemini_api_keys_list),
    }

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_db_failure", error=str(exc))
        result["database"] = f"error: {exc}"
        result["status"] = "degraded"

    redis = deps.get_redis()
    if redis is not None:
        try:
            await redis.ping()
            result["redis"] = "connected"
        except Exception as exc:
            logger.error("health_redis_failure", error=str(exc))
            result["redis"] = f"error: {exc}"
            result["status"] = "degraded"

    return result


# -- API router ------------------------------------------------------------ #

from amora.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
