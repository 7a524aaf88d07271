"""
Standardized Error Message Catalog for CoolCare.

Centralizes error messages for consistency and to avoid leaking
security-sensitive details (lock reasons, account existence) to end users.
"""
from enum import Enum
from typing import Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication Errors (AUTH_*)
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_007"
    AUTH_ACCOUNT_LOCKED = "AUTH_010"

    # Validation Errors (VAL_*)
    VAL_INVALID_INPUT = "VAL_003"

    # Security Errors (SEC_*)
    SEC_RATE_LIMIT_EXCEEDED = "SEC_001"
    SEC_PROTECTED_ACCOUNT = "SEC_008"

    # Business Logic Errors (BUS_*)
    BUS_RESOURCE_NOT_FOUND = "BUS_001"

    # System Errors (SYS_*)
    SYS_INTERNAL_ERROR = "SYS_001"
    SYS_DATABASE_ERROR = "SYS_002"


class ErrorMessages:
    """Centralized error message definitions."""

    _messages: Dict[ErrorCode, str] = {
        ErrorCode.AUTH_INVALID_CREDENTIALS: "Invalid username or password",
        ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: "You don't have permission to perform this action",
        ErrorCode.AUTH_ACCOUNT_LOCKED: "This account is locked. Please contact an administrator",
        ErrorCode.VAL_INVALID_INPUT: "Invalid input provided",
        ErrorCode.SEC_RATE_LIMIT_EXCEEDED: "Too many requests. Please try again later",
        ErrorCode.SEC_PROTECTED_ACCOUNT: "This account cannot be modified by you",
        ErrorCode.BUS_RESOURCE_NOT_FOUND: "Requested resource not found",
        ErrorCode.SYS_INTERNAL_ERROR: "An internal error occurred. Please try again later",
        ErrorCode.SYS_DATABASE_ERROR: "Storage is temporarily unavailable",
    }

    _user_messages: Dict[str, str] = {
        "account_locked_minutes": "Account locked. Try again in {minutes} minutes or contact an administrator",
    }

    @classmethod
    def get(cls, code: ErrorCode, **kwargs) -> str:
        """
        Get error message for a given error code.

        Args:
            code: Error code
            **kwargs: Additional context for formatting

        Returns:
            Formatted error message
        """
        base_message = cls._messages.get(code, "An error occurred")

        if kwargs:
            try:
                return base_message.format(**kwargs)
            except KeyError:
                return base_message

        return base_message

    @classmethod
    def get_user_message(cls, key: str, **kwargs) -> str:
        """
        Get user-friendly message for specific scenarios.

        Args:
            key: Message key
            **kwargs: Additional context for formatting

        Returns:
            Formatted user message
        """
        message = cls._user_messages.get(key, "An error occurred")

        if kwargs:
            try:
                return message.format(**kwargs)
            except KeyError:
                return message

        return message


# Maps HTTP status codes raised by CoolCareException subclasses to catalog codes
STATUS_ERROR_CODES: Dict[int, ErrorCode] = {
    401: ErrorCode.AUTH_INVALID_CREDENTIALS,
    403: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    404: ErrorCode.BUS_RESOURCE_NOT_FOUND,
    409: ErrorCode.SEC_PROTECTED_ACCOUNT,
    422: ErrorCode.VAL_INVALID_INPUT,
    423: ErrorCode.AUTH_ACCOUNT_LOCKED,
    429: ErrorCode.SEC_RATE_LIMIT_EXCEEDED,
    503: ErrorCode.SYS_DATABASE_ERROR,
}


class ErrorResponse:
    """Standardized error response structure."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Dict] = None,
        field: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ErrorMessages.get(code)
        self.details = details or {}
        self.field = field

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        response = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }

        if self.field:
            response["error"]["field"] = self.field

        if self.details:
            response["error"]["details"] = self.details

        return response

    @classmethod
    def for_status(
        cls,
        status_code: int,
        message: Optional[str] = None,
        details: Optional[Dict] = None,
    ) -> "ErrorResponse":
        """Build a response for an HTTP status raised by the service layer."""
        code = STATUS_ERROR_CODES.get(status_code, ErrorCode.SYS_INTERNAL_ERROR)
        return cls(code=code, message=message, details=details)

    @classmethod
    def rate_limit_error(
        cls,
        limit: int,
        window: int,
        retry_after: Optional[int] = None,
    ) -> "ErrorResponse":
        """Create rate limit error response."""
        details = {
            "limit": limit,
            "window_seconds": window,
        }
        if retry_after:
            details["retry_after"] = retry_after

        return cls(
            code=ErrorCode.SEC_RATE_LIMIT_EXCEEDED,
            details=details,
        )


# Security-conscious error messages that don't leak information
SECURE_ERROR_MESSAGES = {
    "login_failed": "Invalid username or password",  # Don't reveal if username exists
    "account_locked": ErrorMessages.get(ErrorCode.AUTH_ACCOUNT_LOCKED),
    "token_invalid": "Authentication failed",
}
