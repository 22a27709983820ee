"""FastAPI application entry point.

Arena API - online gaming tournaments and wallet ledger
"""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from arena import __version__
from arena.api import admin, auth, tournaments, uploads, wallet
from arena.config import get_settings
from arena.logging_config import bind_context, clear_context, configure_logging, get_logger
from arena.middleware.rate_limit import RateLimitMiddleware
from arena.services.rate_limiter import RateLimiter
from arena.services.tournament_status import TournamentStatusEngine
from arena.utils.db import async_session_factory, close_db, engine, init_db
from arena.utils.errors import ArenaError, ErrorCode, ErrorKind
from arena.utils.json_utils import ORJSONResponse

settings = get_settings()

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.app_env == "production",
)
logger = get_logger(__name__)

rate_limiter = RateLimiter.from_url(settings.redis_url, enabled=settings.rate_limit_enabled)


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Connect the database and rate limiter, then stamp legacy live tournaments."""
    logger.info("arena_starting", env=settings.app_env)

    await init_db()

    await rate_limiter.start()

    # Live tournaments from before status timestamps existed
    status_engine = TournamentStatusEngine(async_session_factory, settings)
    try:
        stamped = await status_engine.backfill_missing_timestamps()
        logger.info("live_timestamp_backfill", stamped=stamped)
    except SQLAlchemyError as e:
        logger.error("live_timestamp_backfill_failed", error=str(e))

    yield

    await rate_limiter.stop()
    await close_db()
    logger.info("arena_stopped")


app = FastAPI(
    title="Arena API",
    version=__version__,
    description="Gaming tournaments with an internal wallet",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate X-Request-ID and log one line per request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        clear_context()
        bind_context(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response


app.add_middleware(RequestIDMiddleware)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)


# =============================================================================
# Error Handlers
# =============================================================================

ERROR_KIND_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PRECONDITION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def create_error_response(
    code: str,
    kind: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Body shared by every error: {"error": {code, kind, message, details}}."""
    return {
        "error": {
            "code": code,
            "kind": kind,
            "message": message,
            "details": details or {},
        },
    }


def status_for_error(exc: ArenaError) -> int:
    if exc.code == ErrorCode.NOT_FOUND.value:
        return status.HTTP_404_NOT_FOUND
    return ERROR_KIND_STATUS[exc.kind]


@app.exception_handler(ArenaError)
async def arena_error_handler(request: Request, exc: ArenaError) -> ORJSONResponse:
    """Handle tournament and wallet errors."""
    logger.warning(
        "operation_rejected",
        code=exc.code,
        kind=exc.kind.value,
        message=exc.message,
        trace_id=get_request_id(request),
    )
    return ORJSONResponse(
        status_code=status_for_error(exc),
        content={"error": exc.to_dict()},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> ORJSONResponse:
    """Backend failures become a generic retryable error."""
    logger.error(
        "database_error",
        error_type=type(exc).__name__,
        trace_id=get_request_id(request),
        exc_info=True,
    )
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=create_error_response(
            code=ErrorCode.BACKEND_UNAVAILABLE.value,
            kind=ErrorKind.TRANSIENT.value,
            message="The service is temporarily unavailable, please try again",
        ),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=create_error_response(
            code="VALIDATION_ERROR",
            kind=ErrorKind.VALIDATION.value,
            message="Invalid request",
            details={"errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
                for err in exc.errors()
            ]},
        ),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> ORJSONResponse:
    """Auth dependencies raise HTTPException with a prebuilt error body."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = create_error_response(
            code="HTTP_ERROR",
            kind=ErrorKind.PRECONDITION.value,
            message=str(exc.detail),
        )

    return ORJSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.error(
        "unexpected_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        trace_id=get_request_id(request),
        exc_info=True,
    )

    message = "Internal server error"
    if settings.app_debug:
        message = f"{type(exc).__name__}: {exc}"

    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            code="INTERNAL_ERROR",
            kind=ErrorKind.TRANSIENT.value,
            message=message,
        ),
    )


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health", tags=["Health"], summary="Health check endpoint", response_model=dict)
async def health_check() -> dict[str, Any]:
    """Database and rate limiter status."""
    health_status: dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "services": {
            "database": "unknown",
            "rate_limiter": "running" if rate_limiter.running else "disabled",
        },
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["services"]["database"] = "healthy"
    except SQLAlchemyError as e:
        health_status["services"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"
        logger.error("database_health_check_failed", error=str(e))

    return health_status


# =============================================================================
# Routers
# =============================================================================

API_PREFIX = "/api/v1"

app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(tournaments.router, prefix=API_PREFIX)
app.include_router(wallet.router, prefix=API_PREFIX)
app.include_router(uploads.router, prefix=API_PREFIX)
app.include_router(admin.router, prefix=API_PREFIX)
