"""
Security schemas: incident taxonomy, filters and API payloads.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.config import settings


class IncidentType(str, Enum):
    """Closed set of incident categories."""
    LOGIN_FAILURE = "LOGIN_FAILURE"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_RATE_LIMIT_EXCEEDED = "LOGIN_RATE_LIMIT_EXCEEDED"
    LOGIN_ATTEMPT_LOCKED_ACCOUNT = "LOGIN_ATTEMPT_LOCKED_ACCOUNT"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_UNLOCKED = "ACCOUNT_UNLOCKED"
    ACCOUNT_AUTO_LOCKED = "ACCOUNT_AUTO_LOCKED"
    ASSET_DELETED = "ASSET_DELETED"
    USER_DELETED = "USER_DELETED"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    SECURITY_BREACH = "SECURITY_BREACH"


class IncidentSeverity(str, Enum):
    """
    Incident severity, ordered LOW < MEDIUM < HIGH < CRITICAL.

    Comparisons follow declaration order rather than the string values.
    """
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(IncidentSeverity).index(self)

    def __lt__(self, other):
        if isinstance(other, IncidentSeverity):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, IncidentSeverity):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, IncidentSeverity):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, IncidentSeverity):
            return self.rank >= other.rank
        return NotImplemented


class IncidentFilter(BaseModel):
    """Typed incident query; raw request parameters are parsed into this at the edge."""
    type: Optional[IncidentType] = None
    severity: Optional[IncidentSeverity] = None
    resolved: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
    offset: int = Field(default=0, ge=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are read as UTC, matching how they are stored."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_date_range(self) -> "IncidentFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class IncidentCreate(BaseModel):
    """Manual incident report from the admin dashboard."""
    type: IncidentType
    severity: IncidentSeverity = IncidentSeverity.MEDIUM
    description: str = Field(..., min_length=1, max_length=2000)
    metadata: Optional[Dict[str, Any]] = None
    related_user_ids: Optional[List[UUID]] = None


class IncidentRead(BaseModel):
    """Incident response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: IncidentType
    severity: IncidentSeverity
    description: str
    metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("incident_metadata", "metadata"),
    )
    user_id: Optional[UUID] = None
    related_user_ids: Optional[List[UUID]] = None
    username: Optional[str] = None
    ip_address: Optional[str] = None
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    created_at: datetime


class IncidentPageRead(BaseModel):
    """One page of incidents plus the total count of matching rows."""
    items: List[IncidentRead]
    total: int
    limit: int
    offset: int


class IncidentStatisticsRead(BaseModel):
    """Aggregated incident counts."""
    total_incidents: int
    unresolved_count: int
    count_by_type: Dict[str, int]
    count_by_severity: Dict[str, int]


class SecurityEventRead(BaseModel):
    """Security event response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    payload: Dict[str, Any]
    created_at: datetime


class AccountAction(BaseModel):
    """Lock or unlock request for a user account."""
    action: Literal["lock", "unlock"]
    reason: Optional[str] = Field(default=None, max_length=500)
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    indefinite: bool = False


class LockStatusRead(BaseModel):
    """Lock state as shown to administrators."""
    user_id: UUID
    locked: bool
    locked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    locked_by: Optional[UUID] = None


class ActionResult(BaseModel):
    """Generic acknowledgement."""
    success: bool = True
    message: str
