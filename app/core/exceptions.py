"""
Custom exceptions for the application.
"""
from datetime import datetime
from typing import Any, Dict, Optional


class CoolCareException(Exception):
    """Base exception for all CoolCare exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(CoolCareException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Any):
        message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message,
            status_code=404,
            details={"resource": resource, "resource_id": str(resource_id)},
        )


class ValidationError(CoolCareException):
    """Validation error exception."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=422, details=details)


class ConflictError(CoolCareException):
    """Requested action conflicts with a protection rule."""

    def __init__(self, message: str, reason: Optional[str] = None):
        details = {"reason": reason} if reason else {}
        super().__init__(message, status_code=409, details=details)


class AuthenticationError(CoolCareException):
    """Authentication error exception."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401)


class AuthorizationError(CoolCareException):
    """Authorization error exception."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


class InvalidCredentialsError(AuthenticationError):
    """Invalid credentials exception."""

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class AccountLockedError(CoolCareException):
    """Login refused because the account is locked."""

    def __init__(
        self,
        message: str = "Account is locked",
        locked_until: Optional[datetime] = None,
    ):
        details = {"locked_until": locked_until.isoformat()} if locked_until else {}
        super().__init__(message, status_code=423, details=details)

