"""
Authentication service.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.errors import SECURE_ERROR_MESSAGES
from app.core.exceptions import AccountLockedError, InvalidCredentialsError
from app.core.logging import get_logger
from app.core.security import create_access_token, verify_password
from app.domain.schemas.auth import AuthResponse
from app.domain.schemas.security import IncidentSeverity, IncidentType
from app.domain.schemas.user import UserRead
from app.infrastructure.database.models import User
from app.repositories.user import UserRepository
from app.services.security.audit import SecurityEventLogger, SecurityEventType
from app.services.security.incidents import SecurityIncidentService
from app.services.security.lockout import (
    AUTO_LOCK_REASON,
    AccountLockService,
    FailedLoginTracker,
)

logger = get_logger(__name__)


class AuthService:
    """
    Username/password login.

    The lock is checked before the password so a locked account cannot be
    used to guess credentials. Repeated failures lock the account.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_logger: SecurityEventLogger,
        failed_logins: FailedLoginTracker,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.clock = clock if clock is not None else system_clock
        self.event_logger = event_logger
        self.failed_logins = failed_logins
        self.user_repo = UserRepository(db)
        self.lock_service = AccountLockService(db, event_logger, self.clock)
        self.incident_service = SecurityIncidentService(db, event_logger, self.clock)

    async def login(
        self,
        username: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResponse:
        """
        Authenticate a user and issue an access token.

        Raises:
            InvalidCredentialsError: Unknown user or wrong password
            AccountLockedError: Account is locked, or was just locked
        """
        user = await self.user_repo.get_by_username(username)
        if user is None:
            await self.event_logger.log_security_event(
                SecurityEventType.LOGIN_FAILURE,
                {"username": username, "ip_address": ip_address, "reason": "unknown_user"},
            )
            raise InvalidCredentialsError()

        status = await self.lock_service.is_locked(user.id)
        if status.locked:
            await self._reject_locked(user, status.expires_at, ip_address, user_agent)

        if not verify_password(password, user.password_hash):
            await self._handle_bad_password(user, ip_address, user_agent)

        self.failed_logins.clear(username)
        await self.event_logger.log_security_event(
            SecurityEventType.LOGIN_SUCCESS,
            {"user_id": user.id, "username": user.username, "ip_address": ip_address},
        )
        logger.info("User logged in", user_id=str(user.id), role=user.role.value)

        return AuthResponse(
            access_token=create_access_token(
                subject=str(user.id),
                role=user.role.value,
                username=user.username,
            ),
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserRead.model_validate(user),
        )

    async def _reject_locked(self, user: User, expires_at, ip_address, user_agent) -> None:
        await self.event_logger.log_security_event(
            SecurityEventType.LOGIN_ATTEMPT_LOCKED_ACCOUNT,
            {
                "user_id": user.id,
                "username": user.username,
                "ip_address": ip_address,
                "locked_until": expires_at,
            },
        )
        await self.incident_service.report_incident(
            IncidentType.LOGIN_ATTEMPT_LOCKED_ACCOUNT,
            f"Login attempt on locked account {user.username}",
            severity=IncidentSeverity.MEDIUM,
            metadata={"locked_until": expires_at.isoformat() if expires_at else None},
            user_id=user.id,
            username=user.username,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise AccountLockedError(SECURE_ERROR_MESSAGES["account_locked"])

    async def _handle_bad_password(self, user: User, ip_address, user_agent) -> None:
        attempt = self.failed_logins.record_failure(user.username)
        await self.event_logger.log_security_event(
            SecurityEventType.LOGIN_FAILURE,
            {
                "user_id": user.id,
                "username": user.username,
                "ip_address": ip_address,
                "attempts": attempt.attempts,
            },
        )

        if not attempt.threshold_reached:
            raise InvalidCredentialsError()

        lock = await self.lock_service.lock(user.id, reason=AUTO_LOCK_REASON)
        self.failed_logins.clear(user.username)
        await self.incident_service.report_incident(
            IncidentType.ACCOUNT_AUTO_LOCKED,
            f"Account {user.username} locked after {attempt.attempts} failed login attempts",
            severity=IncidentSeverity.MEDIUM,
            metadata={
                "attempts": attempt.attempts,
                "expires_at": lock.expires_at.isoformat() if lock.expires_at else None,
            },
            user_id=user.id,
            username=user.username,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise AccountLockedError(SECURE_ERROR_MESSAGES["account_locked"])
