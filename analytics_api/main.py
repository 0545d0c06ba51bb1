"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB and Redis connectivity (non-fatal).
  • On shutdown: close the Redis pool, dispose the engine.

Routers:
  • /api/auth      — registration + key management
  • /api/analytics — event collection + aggregated reads
  • /health        — shallow liveness probe

Errors are always rendered as {"error": <message>}.
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from starlette.exceptions import HTTPException

from analytics_api.core.config import settings
from analytics_api.core.database import engine
from analytics_api.core.errors import AdmissionError
from analytics_api.core.redis_client import close_redis_client, get_redis_client
from analytics_api.routers.analytics import router as analytics_router
from analytics_api.routers.auth import router as auth_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Startup — verify DB is reachable
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified ✓")
    except Exception:
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but requests will fail until the DB is available."
        )

    # Startup: verify Redis. Without it, limits and caching degrade to per-process
    if settings.SHARED_STORE_BACKEND.lower() == "redis":
        try:
            await get_redis_client().ping()
            logger.info("Redis connection verified ✓")
        except RedisError:
            logger.warning(
                "Could not reach Redis on startup. Rate limiting falls back to "
                "local counters and summaries are computed uncached."
            )

    yield  # ← application runs here

    await close_redis_client()
    await engine.dispose()
    logger.info("Connections closed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "Multi-tenant analytics ingestion API — "
        "API keys, event collection, aggregated statistics."
    ),
    lifespan=lifespan,
)


# ── Error rendering ─────────────────────────────────────────
@app.exception_handler(AdmissionError)
async def admission_error_handler(_request: Request, exc: AdmissionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    _request: Request, exc: RequestValidationError,
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Mount routers
app.include_router(auth_router, prefix="/api/auth")
app.include_router(analytics_router, prefix="/api/analytics")


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check — confirms the process is alive."""
    return {"status": "ok"}
