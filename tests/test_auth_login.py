"""
Tests for username/password login with lockout.
"""
from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.errors import SECURE_ERROR_MESSAGES
from app.core.exceptions import AccountLockedError, InvalidCredentialsError
from app.core.security import decode_token
from app.domain.schemas.security import IncidentFilter, IncidentType
from app.services.auth import AuthService
from app.services.security.audit import SecurityEventType
from app.services.security.lockout import AUTO_LOCK_REASON, FailedLoginTracker
from tests.fixtures.users import UserTestData


@pytest.fixture
def failed_logins(clock) -> FailedLoginTracker:
    return FailedLoginTracker(clock=clock)


@pytest.fixture
def auth_service(db_session, event_logger, failed_logins, clock) -> AuthService:
    return AuthService(db_session, event_logger, failed_logins, clock)


async def fail_login(service: AuthService, username: str):
    with pytest.raises((InvalidCredentialsError, AccountLockedError)) as exc_info:
        await service.login(username, "wrong-password", ip_address="198.51.100.4")
    return exc_info.value


class TestLogin:
    """Credential checks."""

    async def test_success_returns_token(self, auth_service, technician_user, event_logger):
        response = await auth_service.login("tech01", UserTestData.PASSWORD)

        payload = decode_token(response.access_token)
        assert payload["sub"] == str(technician_user.id)
        assert payload["role"] == "TECHNICIAN"
        assert response.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        assert response.user.username == "tech01"

        events = await event_logger.get_security_events()
        assert events[0].event_type == SecurityEventType.LOGIN_SUCCESS.value

    async def test_wrong_password(self, auth_service, technician_user):
        error = await fail_login(auth_service, "tech01")
        assert isinstance(error, InvalidCredentialsError)

    async def test_unknown_user_same_error(self, auth_service):
        error = await fail_login(auth_service, "ghost")

        assert isinstance(error, InvalidCredentialsError)
        assert error.message == SECURE_ERROR_MESSAGES["login_failed"]

    async def test_unknown_user_not_tracked(self, auth_service, failed_logins):
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS):
            await fail_login(auth_service, "ghost")

        assert failed_logins.attempts("ghost") == 0
        assert len(failed_logins) == 0

    async def test_success_clears_failures(self, auth_service, failed_logins, technician_user):
        await fail_login(auth_service, "tech01")
        await fail_login(auth_service, "tech01")

        await auth_service.login("tech01", UserTestData.PASSWORD)

        assert failed_logins.attempts("tech01") == 0


class TestLockedAccountLogin:
    """A locked account is refused before the password is checked."""

    async def test_locked_account_refused_with_generic_message(self, auth_service, technician_user):
        await auth_service.lock_service.lock(technician_user.id, reason="Investigating deletions")

        with pytest.raises(AccountLockedError) as exc_info:
            await auth_service.login("tech01", UserTestData.PASSWORD)

        assert exc_info.value.message == SECURE_ERROR_MESSAGES["account_locked"]
        assert "Investigating" not in exc_info.value.message

    async def test_locked_attempt_reported(self, auth_service, technician_user):
        await auth_service.lock_service.lock(technician_user.id)

        with pytest.raises(AccountLockedError):
            await auth_service.login("tech01", UserTestData.PASSWORD, ip_address="198.51.100.4")

        page = await auth_service.incident_service.query_incidents(
            IncidentFilter(type=IncidentType.LOGIN_ATTEMPT_LOCKED_ACCOUNT)
        )
        assert page.total == 1
        assert page.items[0].user_id == technician_user.id
        assert page.items[0].ip_address == "198.51.100.4"

    async def test_login_after_expiry(self, auth_service, technician_user, clock):
        await auth_service.lock_service.lock(technician_user.id, duration_minutes=10)

        with pytest.raises(AccountLockedError):
            await auth_service.login("tech01", UserTestData.PASSWORD)

        clock.advance(minutes=10)
        response = await auth_service.login("tech01", UserTestData.PASSWORD)
        assert response.access_token


class TestAutoLock:
    """Repeated failures lock the account."""

    async def test_threshold_locks_account(self, auth_service, technician_user, clock):
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS - 1):
            error = await fail_login(auth_service, "tech01")
            assert isinstance(error, InvalidCredentialsError)

        error = await fail_login(auth_service, "tech01")
        assert isinstance(error, AccountLockedError)

        status = await auth_service.lock_service.is_locked(technician_user.id)
        assert status.locked is True
        assert status.lock.reason == AUTO_LOCK_REASON
        assert status.expires_at == clock.now() + timedelta(minutes=settings.ACCOUNT_LOCK_DEFAULT_MINUTES)

    async def test_auto_lock_reported(self, auth_service, technician_user, event_logger):
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS):
            await fail_login(auth_service, "tech01")

        page = await auth_service.incident_service.query_incidents(
            IncidentFilter(type=IncidentType.ACCOUNT_AUTO_LOCKED)
        )
        assert page.total == 1
        assert page.items[0].incident_metadata["attempts"] == settings.LOGIN_MAX_FAILED_ATTEMPTS

        locked_events = await event_logger.get_security_events(
            event_type=SecurityEventType.ACCOUNT_LOCKED,
        )
        assert len(locked_events) == 1

    async def test_correct_password_refused_while_auto_locked(self, auth_service, technician_user, clock):
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS):
            await fail_login(auth_service, "tech01")

        with pytest.raises(AccountLockedError):
            await auth_service.login("tech01", UserTestData.PASSWORD)

        clock.advance(minutes=settings.ACCOUNT_LOCK_DEFAULT_MINUTES)
        response = await auth_service.login("tech01", UserTestData.PASSWORD)
        assert response.user.id == technician_user.id
