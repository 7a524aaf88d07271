"""
Domain schemas for CoolCare application.
"""

from .auth import *
from .security import *
from .user import *

__all__ = [
    # Auth schemas
    "UserLogin",
    "AuthResponse",

    # User schemas
    "Role",
    "UserRead",
    "CurrentUser",

    # Security schemas
    "IncidentType",
    "IncidentSeverity",
    "IncidentFilter",
    "IncidentCreate",
    "IncidentRead",
    "IncidentPageRead",
    "IncidentStatisticsRead",
    "SecurityEventRead",
    "AccountAction",
    "LockStatusRead",
    "ActionResult",
]
