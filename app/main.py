"""
CoolCare API - Main application entry point.
"""
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.api.v1.router import api_router
from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.errors import ErrorCode, ErrorResponse
from app.core.exceptions import CoolCareException
from app.core.logging import get_logger, log_error_details, log_request_details, setup_logging
from app.infrastructure.database.base import AsyncSessionLocal, engine, init_models
from app.services.security.audit import SecurityEventLogger
from app.services.security.lockout import FailedLoginTracker
from app.services.security.middleware import RateLimitMiddleware, get_client_ip
from app.services.security.rate_limiter import RateLimiter

# Setup logging
setup_logging()
logger = get_logger(__name__)


# Initialize Sentry if configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        **settings.get_sentry_config(),
        integrations=[
            SqlalchemyIntegration(),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    # Startup
    logger.info(
        "Starting CoolCare API",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    # Note: In production, use Alembic migrations instead
    if settings.is_development or settings.is_sqlite:
        await init_models()

    yield

    # Shutdown
    logger.info("Shutting down CoolCare API")
    await engine.dispose()


async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request."""
    request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

    # Bind request ID to logging context
    clear_contextvars()
    bind_contextvars(request_id=request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


async def log_requests(request: Request, call_next):
    """Log all requests with timing information."""
    start_time = time.time()

    logger.info(
        "Request started",
        **log_request_details(
            request_id=request.headers.get("X-Request-ID", ""),
            method=request.method,
            path=request.url.path,
            client_ip=get_client_ip(request),
        ),
    )

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "Request completed",
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )

    return response


async def coolcare_exception_handler(request: Request, exc: CoolCareException):
    """Render service-layer errors with the error catalog."""
    if exc.status_code >= 500:
        logger.error("Service error", path=request.url.path, message=exc.message)

    body = ErrorResponse.for_status(exc.status_code, exc.message, exc.details)

    headers = {}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    if exc.details.get("retry_after"):
        headers["Retry-After"] = str(exc.details["retry_after"])

    return JSONResponse(status_code=exc.status_code, content=body.to_dict(), headers=headers)


async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    """Storage failures surface as 503."""
    logger.error(
        "Storage error",
        **log_error_details(exc, path=request.url.path, method=request.method),
    )
    sentry_sdk.capture_exception(exc)
    body = ErrorResponse(code=ErrorCode.SYS_DATABASE_ERROR)
    return JSONResponse(status_code=503, content=body.to_dict())


async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        path=request.url.path,
        method=request.method,
    )

    # Don't expose internal errors in production
    if settings.is_production:
        body = ErrorResponse(code=ErrorCode.SYS_INTERNAL_ERROR)
    else:
        body = ErrorResponse(code=ErrorCode.SYS_INTERNAL_ERROR, message=str(exc))
    return JSONResponse(status_code=500, content=body.to_dict())


def create_app(
    clock: Optional[Clock] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        clock: Time source shared by every security component
        session_factory: Sessions for out-of-request writes (events, incidents)
        rate_limiter: Counter table owned by this application

    Returns:
        Configured application
    """
    clock = clock if clock is not None else system_clock
    session_factory = session_factory if session_factory is not None else AsyncSessionLocal

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.APP_VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json" if not settings.is_production else None,
        docs_url=f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else None,
        redoc_url=f"{settings.API_V1_PREFIX}/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # Security components owned by this application instance
    app.state.clock = clock
    app.state.session_factory = session_factory
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter(clock=clock)
    app.state.event_logger = SecurityEventLogger(session_factory, clock)
    app.state.failed_logins = FailedLoginTracker(clock=clock)

    # Middleware runs in reverse order of registration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RateLimitMiddleware)
    app.middleware("http")(log_requests)
    app.middleware("http")(add_request_id)

    app.add_exception_handler(CoolCareException, coolcare_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """
        Health check endpoint.

        Returns:
            Health status and application info
        """
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/")
    async def root() -> Dict[str, str]:
        """API information."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else "Disabled in production",
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
