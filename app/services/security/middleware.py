"""
Rate limiting middleware for CoolCare.

Classifies each request into a limit class, keys it by client IP and asks
the application's RateLimiter for a decision. Rejections become 429
responses with Retry-After and X-RateLimit-* headers, are written to the
security event stream and, for login attempts, reported as incidents.
"""

from typing import Callable, Optional

import sentry_sdk
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.errors import ErrorResponse
from app.core.logging import get_logger
from app.domain.schemas.security import IncidentSeverity, IncidentType
from app.services.security.audit import SecurityEventType
from app.services.security.incidents import SecurityIncidentService
from app.services.security.rate_limiter import LimitClass, RateLimiter, RateLimitResult

logger = get_logger(__name__)

EXEMPT_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    f"{settings.API_V1_PREFIX}/health",
    f"{settings.API_V1_PREFIX}/health/ready",
    f"{settings.API_V1_PREFIX}/docs",
    f"{settings.API_V1_PREFIX}/redoc",
    f"{settings.API_V1_PREFIX}/openapi.json",
}
LOGIN_PATH = f"{settings.API_V1_PREFIX}/auth/login"


def classify_request(path: str) -> Optional[LimitClass]:
    """
    Map a request path to its limit class.

    Returns:
        LimitClass, or None for paths that are not rate limited
    """
    if path in EXEMPT_PATHS:
        return None
    if path == LOGIN_PATH:
        return LimitClass.LOGIN
    if any(path.startswith(prefix) for prefix in settings.UPLOAD_PATH_PREFIXES):
        return LimitClass.UPLOAD
    if any(path.startswith(prefix) for prefix in settings.CONTACT_PATH_PREFIXES):
        return LimitClass.CONTACT
    if path.startswith("/api/"):
        return LimitClass.API
    return None


def get_client_ip(request: Request) -> str:
    """Client address from proxy headers, falling back to the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using the application's RateLimiter.

    The limiter, event logger, clock and session factory are read from
    ``app.state`` on every request so tests can swap them.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        if not settings.RATE_LIMIT_ENABLED:
            return await call_next(request)

        limit_class = classify_request(request.url.path)
        if limit_class is None:
            return await call_next(request)

        limiter: RateLimiter = request.app.state.rate_limiter
        client_ip = get_client_ip(request)
        result = limiter.check(client_ip, limit_class)

        if not result.allowed:
            await self._on_rejected(request, client_ip, limit_class, result)
            rule = limiter.rules.get(limit_class)
            body = ErrorResponse.rate_limit_error(
                limit=result.limit,
                window=rule.window_seconds if rule else 0,
                retry_after=result.retry_after,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=body.to_dict(),
                headers=result.headers(),
            )

        response = await call_next(request)
        response.headers.update(result.headers())
        return response

    async def _on_rejected(
        self,
        request: Request,
        client_ip: str,
        limit_class: LimitClass,
        result: RateLimitResult,
    ) -> None:
        state = request.app.state
        await state.event_logger.log_security_event(
            SecurityEventType.RATE_LIMIT_EXCEEDED,
            {
                "ip_address": client_ip,
                "limit_class": limit_class,
                "path": request.url.path,
                "method": request.method,
                "retry_after": result.retry_after,
                "reset_time": result.reset_time,
            },
        )

        if limit_class != LimitClass.LOGIN:
            return

        try:
            async with state.session_factory() as session:
                service = SecurityIncidentService(session, state.event_logger, state.clock)
                await service.report_incident(
                    IncidentType.LOGIN_RATE_LIMIT_EXCEEDED,
                    f"Login rate limit exceeded from {client_ip}",
                    severity=IncidentSeverity.HIGH,
                    metadata={
                        "retry_after": result.retry_after,
                        "limit": result.limit,
                    },
                    ip_address=client_ip,
                    user_agent=request.headers.get("user-agent"),
                )
        except SQLAlchemyError as e:
            # The 429 still goes out; the incident is lost
            logger.exception("Failed to report rate limit incident", ip_address=client_ip)
            sentry_sdk.capture_exception(e)
