"""
Tests for role checks and the account lock policy.
"""
import uuid

import pytest

from app.core.exceptions import AuthorizationError, ConflictError
from app.domain.schemas.user import CurrentUser, Role
from app.services.security.authorization import ensure_admin, ensure_can_lock, ensure_role, has_role


def principal(role: Role) -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), username=f"{role.value.lower()}-user", role=role)


class TestRoleChecks:
    """Generic role gate."""

    def test_has_role(self):
        user = principal(Role.TECHNICIAN)
        assert has_role(user, [Role.ADMIN, Role.TECHNICIAN]) is True
        assert has_role(user, [Role.ADMIN]) is False

    def test_ensure_role_passes(self):
        ensure_role(principal(Role.CLIENT), Role.CLIENT, Role.ADMIN)

    @pytest.mark.parametrize("role", [Role.TECHNICIAN, Role.CLIENT])
    def test_ensure_admin_rejects_non_admins(self, role):
        with pytest.raises(AuthorizationError) as exc_info:
            ensure_admin(principal(role))

        assert exc_info.value.status_code == 403


class TestEnsureCanLock:
    """Who may lock whom."""

    def test_admin_may_lock_technician(self):
        ensure_can_lock(principal(Role.ADMIN), uuid.uuid4(), Role.TECHNICIAN)

    def test_admin_may_lock_client(self):
        ensure_can_lock(principal(Role.ADMIN), uuid.uuid4(), Role.CLIENT)

    def test_self_lock_rejected(self):
        admin = principal(Role.ADMIN)

        with pytest.raises(ConflictError) as exc_info:
            ensure_can_lock(admin, admin.id, Role.ADMIN)

        assert exc_info.value.details["reason"] == "self_target"

    def test_other_admin_protected(self):
        with pytest.raises(ConflictError) as exc_info:
            ensure_can_lock(principal(Role.ADMIN), uuid.uuid4(), Role.ADMIN)

        assert exc_info.value.details["reason"] == "protected_admin"

    def test_non_admin_rejected_before_policy(self):
        technician = principal(Role.TECHNICIAN)

        with pytest.raises(AuthorizationError):
            ensure_can_lock(technician, technician.id, Role.TECHNICIAN)
