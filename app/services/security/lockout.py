"""
Account lock management for CoolCare.

Provides:
- Durable, one-per-user account locks (timed or indefinite)
- Passive expiry: a lapsed lock reads as unlocked without a background job
- Lock/unlock security events
- In-memory failed login tracking that drives automatic locks

Who may lock whom is decided by the authorization layer, not here.
"""

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.errors import SECURE_ERROR_MESSAGES, ErrorMessages
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.infrastructure.database.models import AccountLock
from app.repositories.account_lock import AccountLockRepository
from app.repositories.user import UserRepository
from app.services.security.audit import SecurityEventLogger, SecurityEventType

logger = get_logger(__name__)

DEFAULT_LOCK_REASON = "Security incident"
AUTO_LOCK_REASON = "Too many failed login attempts"


@dataclass(frozen=True)
class LockStatus:
    """Current lock state of an account."""
    locked: bool
    lock: Optional[AccountLock] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.lock.expires_at if self.lock else None

    @property
    def is_indefinite(self) -> bool:
        return self.locked and self.lock is not None and self.lock.expires_at is None


class AccountLockService:
    """
    Durable store of account locks.

    A user has at most one lock; locking again replaces it and unlocking
    removes it.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_logger: Optional[SecurityEventLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.clock = clock if clock is not None else system_clock
        self.event_logger = event_logger if event_logger is not None else SecurityEventLogger(clock=self.clock)
        self.lock_repo = AccountLockRepository(db)
        self.user_repo = UserRepository(db)

    async def lock(
        self,
        user_id: UUID,
        reason: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        locked_by: Optional[UUID] = None,
    ) -> AccountLock:
        """
        Lock an account for a fixed duration.

        Args:
            user_id: Account to lock
            reason: Shown to administrators
            duration_minutes: Lock length; defaults to the configured policy
            locked_by: Administrator issuing the lock

        Returns:
            The active lock
        """
        if duration_minutes is None:
            duration_minutes = settings.ACCOUNT_LOCK_DEFAULT_MINUTES
        if duration_minutes <= 0:
            raise ValidationError(
                "Lock duration must be a positive number of minutes",
                field="duration_minutes",
            )

        now = self.clock.now()
        return await self._store_lock(
            user_id,
            reason=reason,
            locked_at=now,
            expires_at=now + timedelta(minutes=duration_minutes),
            locked_by=locked_by,
        )

    async def lock_indefinitely(
        self,
        user_id: UUID,
        reason: Optional[str] = None,
        locked_by: Optional[UUID] = None,
    ) -> AccountLock:
        """Lock an account until an administrator unlocks it."""
        return await self._store_lock(
            user_id,
            reason=reason,
            locked_at=self.clock.now(),
            expires_at=None,
            locked_by=locked_by,
        )

    async def _store_lock(
        self,
        user_id: UUID,
        *,
        reason: Optional[str],
        locked_at: datetime,
        expires_at: Optional[datetime],
        locked_by: Optional[UUID],
    ) -> AccountLock:
        user = await self.user_repo.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        lock = await self.lock_repo.upsert(
            user_id,
            {
                "locked_at": locked_at,
                "expires_at": expires_at,
                "reason": reason or DEFAULT_LOCK_REASON,
                "locked_by": locked_by,
            },
        )

        logger.info(
            "Account locked",
            user_id=str(user_id),
            expires_at=expires_at.isoformat() if expires_at else None,
            locked_by=str(locked_by) if locked_by else None,
        )
        await self.event_logger.log_security_event(
            SecurityEventType.ACCOUNT_LOCKED,
            {
                "user_id": user_id,
                "username": user.username,
                "reason": lock.reason,
                "expires_at": expires_at,
                "locked_by": locked_by,
            },
        )
        return lock

    async def unlock(
        self,
        user_id: UUID,
        unlocked_by: Optional[UUID] = None,
    ) -> bool:
        """
        Remove the lock on an account.

        Unlocking an account that is not locked is a no-op.

        Returns:
            True if a lock was removed
        """
        removed = await self.lock_repo.delete_by_user(user_id)
        if not removed:
            logger.debug("Unlock requested for account without lock", user_id=str(user_id))
            return False

        logger.info(
            "Account unlocked",
            user_id=str(user_id),
            unlocked_by=str(unlocked_by) if unlocked_by else None,
        )
        await self.event_logger.log_security_event(
            SecurityEventType.ACCOUNT_UNLOCKED,
            {"user_id": user_id, "unlocked_by": unlocked_by},
        )
        return True

    async def is_locked(self, user_id: UUID) -> LockStatus:
        """
        Check whether an account is currently locked.

        A lock whose expiry has passed reads as unlocked; the stale row is
        left for release_expired_locks.
        """
        lock = await self.lock_repo.get_by_user(user_id)
        if lock is None:
            return LockStatus(locked=False)

        if lock.expires_at is not None and lock.expires_at <= self.clock.now():
            return LockStatus(locked=False)

        return LockStatus(locked=True, lock=lock)

    async def release_expired_locks(self) -> int:
        """
        Delete lapsed lock rows.

        Returns:
            Number of locks released
        """
        released = await self.lock_repo.delete_expired(self.clock.now())
        if released:
            logger.info("Released expired account locks", count=released)
        return released

    def lock_message(self, status: LockStatus, for_admin: bool = False) -> str:
        """
        Human-readable lock description.

        Non-admin callers only learn that the account is locked.
        """
        if not status.locked:
            return ""
        if not for_admin or status.lock is None:
            return SECURE_ERROR_MESSAGES["account_locked"]

        if status.expires_at is None:
            return f"Account locked indefinitely: {status.lock.reason}"

        remaining = (status.expires_at - self.clock.now()).total_seconds()
        minutes = max(1, math.ceil(remaining / 60))
        return (
            ErrorMessages.get_user_message("account_locked_minutes", minutes=minutes)
            + f" ({status.lock.reason})"
        )


@dataclass(frozen=True)
class FailedLoginStatus:
    """Result of recording a failed login."""
    attempts: int
    remaining: int
    threshold_reached: bool


@dataclass
class _Attempts:
    count: int
    first_attempt: datetime


class FailedLoginTracker:
    """
    Counts failed logins per identifier within a rolling window.

    The window starts at the first failure and resets once it has elapsed.
    Expired records are swept opportunistically so the map stays bounded
    by the identifiers seen within roughly one window.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Optional[Clock] = None,
        sweep_interval_seconds: Optional[int] = None,
    ):
        self.max_attempts = max_attempts or settings.LOGIN_MAX_FAILED_ATTEMPTS
        self.window = timedelta(seconds=window_seconds or settings.LOGIN_FAILURE_WINDOW_SECONDS)
        self.clock = clock if clock is not None else system_clock
        self.sweep_interval = timedelta(
            seconds=sweep_interval_seconds or settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS
        )
        self._attempts: Dict[str, _Attempts] = {}
        self._lock = threading.Lock()
        self._last_sweep = self.clock.now()

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def record_failure(self, identifier: str) -> FailedLoginStatus:
        now = self.clock.now()
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep_locked(now)

            record = self._attempts.get(identifier)
            if record is None or now - record.first_attempt >= self.window:
                record = _Attempts(count=0, first_attempt=now)
                self._attempts[identifier] = record
            record.count += 1
            attempts = record.count

        status = FailedLoginStatus(
            attempts=attempts,
            remaining=max(0, self.max_attempts - attempts),
            threshold_reached=attempts >= self.max_attempts,
        )
        logger.warning(
            "Failed login attempt",
            identifier=identifier,
            attempts=attempts,
            threshold_reached=status.threshold_reached,
        )
        return status

    def attempts(self, identifier: str) -> int:
        now = self.clock.now()
        with self._lock:
            record = self._attempts.get(identifier)
            if record is None or now - record.first_attempt >= self.window:
                return 0
            return record.count

    def clear(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(identifier, None)

    def sweep(self) -> int:
        """Drop records whose window has elapsed. Returns the number dropped."""
        with self._lock:
            return self._sweep_locked(self.clock.now())

    def _sweep_locked(self, now: datetime) -> int:
        stale = [
            identifier
            for identifier, record in self._attempts.items()
            if now - record.first_attempt >= self.window
        ]
        for identifier in stale:
            del self._attempts[identifier]
        self._last_sweep = now

        if stale:
            logger.debug("Evicted expired failed-login records", count=len(stale))
        return len(stale)
