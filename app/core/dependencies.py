"""
Dependency injection for FastAPI.
"""
from typing import Callable
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import SECURE_ERROR_MESSAGES
from app.core.exceptions import AccountLockedError, AuthenticationError
from app.core.security import decode_token
from app.domain.schemas.user import CurrentUser, Role
from app.infrastructure.database.base import get_db
from app.repositories.user import UserRepository
from app.services.auth import AuthService
from app.services.security.audit import SecurityEventLogger
from app.services.security.authorization import ensure_role
from app.services.security.incidents import SecurityIncidentService
from app.services.security.lockout import AccountLockService, FailedLoginTracker
from app.services.security.rate_limiter import RateLimiter

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login",
    auto_error=False,
)


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_event_logger(request: Request) -> SecurityEventLogger:
    return request.app.state.event_logger


def get_failed_login_tracker(request: Request) -> FailedLoginTracker:
    return request.app.state.failed_logins


def get_lock_service(
    db: AsyncSession = Depends(get_db),
    event_logger: SecurityEventLogger = Depends(get_event_logger),
    clock: Clock = Depends(get_clock),
) -> AccountLockService:
    return AccountLockService(db, event_logger, clock)


def get_incident_service(
    db: AsyncSession = Depends(get_db),
    event_logger: SecurityEventLogger = Depends(get_event_logger),
    clock: Clock = Depends(get_clock),
) -> SecurityIncidentService:
    return SecurityIncidentService(db, event_logger, clock)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    event_logger: SecurityEventLogger = Depends(get_event_logger),
    failed_logins: FailedLoginTracker = Depends(get_failed_login_tracker),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(db, event_logger, failed_logins, clock)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    lock_service: AccountLockService = Depends(get_lock_service),
) -> CurrentUser:
    """
    Get current authenticated user from JWT token.

    Args:
        token: JWT access token
        db: Database session
        lock_service: Lock lookups

    Returns:
        Current user

    Raises:
        AuthenticationError: Missing or invalid token, or unknown user
        AccountLockedError: Account was locked after the token was issued
    """
    if not token:
        raise AuthenticationError()

    payload = decode_token(token)
    if not payload:
        raise AuthenticationError(SECURE_ERROR_MESSAGES["token_invalid"])

    # Check token type
    if payload.get("type") != "access":
        raise AuthenticationError(SECURE_ERROR_MESSAGES["token_invalid"])

    try:
        user_id = UUID(payload.get("sub", ""))
    except ValueError:
        raise AuthenticationError(SECURE_ERROR_MESSAGES["token_invalid"])

    user = await UserRepository(db).get(user_id)
    if not user:
        raise AuthenticationError(SECURE_ERROR_MESSAGES["token_invalid"])

    status = await lock_service.is_locked(user.id)
    if status.locked:
        raise AccountLockedError(SECURE_ERROR_MESSAGES["account_locked"])

    return CurrentUser.model_validate(user)


def require_roles(*roles: Role) -> Callable:
    """
    Build a dependency that admits only the given roles.

    Usage:
        @router.get("/", dependencies=[Depends(require_roles(Role.ADMIN, Role.TECHNICIAN))])
    """
    async def dependency(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        ensure_role(current_user, *roles)
        return current_user

    return dependency


require_admin = require_roles(Role.ADMIN)
