"""
Authorization rules for security administration.

Role checks for the admin surface and the account protection policy applied
before a lock request reaches the lock manager.
"""
from typing import Iterable

from app.core.exceptions import AuthorizationError, ConflictError
from app.core.logging import get_logger
from app.domain.schemas.user import CurrentUser, Role

logger = get_logger(__name__)


def has_role(user: CurrentUser, roles: Iterable[Role]) -> bool:
    return user.role in set(roles)


def ensure_role(user: CurrentUser, *roles: Role) -> None:
    """Raise AuthorizationError unless the user holds one of the roles."""
    if not has_role(user, roles):
        logger.warning(
            "Role check failed",
            user_id=str(user.id),
            role=user.role.value,
            required=[role.value for role in roles],
        )
        raise AuthorizationError()


def ensure_admin(user: CurrentUser) -> None:
    ensure_role(user, Role.ADMIN)


def ensure_can_lock(actor: CurrentUser, target_id, target_role: Role) -> None:
    """
    Check that an administrator may lock the target account.

    Args:
        actor: Administrator issuing the lock
        target_id: Account to lock
        target_role: Role of the account to lock

    Raises:
        AuthorizationError: Actor is not an administrator
        ConflictError: Actor targets their own account or another administrator
    """
    ensure_admin(actor)

    if actor.id == target_id:
        raise ConflictError("You cannot lock your own account", reason="self_target")

    if target_role == Role.ADMIN:
        raise ConflictError(
            "Administrator accounts cannot be locked by other administrators",
            reason="protected_admin",
        )
