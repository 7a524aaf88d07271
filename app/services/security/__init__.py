"""
Security core for CoolCare.

This package provides:
- Rate limiting
- Account locks and failed login tracking
- Security event logging
- Security incident store and statistics
- Authorization rules for security administration
"""

from .audit import EVENT_SEVERITY_MAP, EventSeverity, SecurityEventLogger, SecurityEventType
from .authorization import ensure_admin, ensure_can_lock, ensure_role, has_role
from .incidents import IncidentPage, IncidentStatistics, SecurityIncidentService
from .lockout import AccountLockService, FailedLoginStatus, FailedLoginTracker, LockStatus
from .middleware import RateLimitMiddleware, classify_request, get_client_ip
from .rate_limiter import LimitClass, RateLimiter, RateLimitResult, RateLimitRule

__all__ = [
    # Event logging
    "SecurityEventLogger",
    "SecurityEventType",
    "EventSeverity",
    "EVENT_SEVERITY_MAP",

    # Authorization
    "ensure_admin",
    "ensure_can_lock",
    "ensure_role",
    "has_role",

    # Incidents
    "SecurityIncidentService",
    "IncidentPage",
    "IncidentStatistics",

    # Account locks
    "AccountLockService",
    "FailedLoginTracker",
    "FailedLoginStatus",
    "LockStatus",

    # Rate limiting
    "LimitClass",
    "RateLimiter",
    "RateLimitResult",
    "RateLimitRule",

    # Middleware
    "RateLimitMiddleware",
    "classify_request",
    "get_client_ip",
]
