"""
Security administration endpoints.

Incident dashboard, security event feed, account lock management and rate
limit resets. Every route requires an administrator.
"""
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import (
    get_event_logger,
    get_incident_service,
    get_lock_service,
    get_rate_limiter,
    require_admin,
)
from app.core.exceptions import NotFoundError, ValidationError
from app.domain.schemas.security import (
    AccountAction,
    ActionResult,
    IncidentCreate,
    IncidentFilter,
    IncidentPageRead,
    IncidentRead,
    IncidentSeverity,
    IncidentStatisticsRead,
    IncidentType,
    LockStatusRead,
    SecurityEventRead,
)
from app.domain.schemas.user import CurrentUser
from app.infrastructure.database.base import get_db
from app.repositories.user import UserRepository
from app.services.security.audit import SecurityEventLogger, SecurityEventType
from app.services.security.authorization import ensure_can_lock
from app.services.security.incidents import SecurityIncidentService
from app.services.security.lockout import AccountLockService, LockStatus
from app.services.security.rate_limiter import LimitClass, RateLimiter

router = APIRouter()


def parse_incident_filter(
    type: Optional[IncidentType] = Query(None),
    severity: Optional[IncidentSeverity] = Query(None),
    resolved: Optional[bool] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE),
    offset: int = Query(0),
) -> IncidentFilter:
    """Parse raw query parameters into a typed incident filter."""
    try:
        return IncidentFilter(
            type=type,
            severity=severity,
            resolved=resolved,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(first.get("msg", "Invalid incident filter"), field=field)


@router.get("/incidents", response_model=IncidentPageRead)
async def list_incidents(
    filters: IncidentFilter = Depends(parse_incident_filter),
    current_user: CurrentUser = Depends(require_admin),
    service: SecurityIncidentService = Depends(get_incident_service),
) -> Any:
    """
    List security incidents, newest first.

    Filter by type, severity, resolved state and creation date range.
    """
    page = await service.query_incidents(filters)
    return IncidentPageRead(
        items=[IncidentRead.model_validate(item) for item in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/incidents/statistics", response_model=IncidentStatisticsRead)
async def incident_statistics(
    current_user: CurrentUser = Depends(require_admin),
    service: SecurityIncidentService = Depends(get_incident_service),
) -> Any:
    """Incident counts by type and severity."""
    stats = await service.get_statistics()
    return IncidentStatisticsRead(
        total_incidents=stats.total_incidents,
        unresolved_count=stats.unresolved_count,
        count_by_type=stats.count_by_type,
        count_by_severity=stats.count_by_severity,
    )


@router.post("/incidents", response_model=IncidentRead, status_code=status.HTTP_201_CREATED)
async def report_incident(
    incident: IncidentCreate,
    current_user: CurrentUser = Depends(require_admin),
    service: SecurityIncidentService = Depends(get_incident_service),
) -> Any:
    """Manually report a security incident."""
    metadata = dict(incident.metadata or {})
    metadata.setdefault("reported_by", str(current_user.id))

    created = await service.report_incident(
        incident.type,
        incident.description,
        severity=incident.severity,
        metadata=metadata,
        related_user_ids=incident.related_user_ids,
    )
    return IncidentRead.model_validate(created)


@router.post("/incidents/{incident_id}/resolve", response_model=IncidentRead)
async def resolve_incident(
    incident_id: int,
    current_user: CurrentUser = Depends(require_admin),
    service: SecurityIncidentService = Depends(get_incident_service),
) -> Any:
    """Mark an incident as resolved. Resolving twice is harmless."""
    incident = await service.resolve_incident(incident_id, resolved_by=current_user.id)
    return IncidentRead.model_validate(incident)


@router.get("/events", response_model=List[SecurityEventRead])
async def list_security_events(
    limit: int = Query(settings.SECURITY_EVENTS_DEFAULT_LIMIT, ge=1, le=settings.MAX_PAGE_SIZE),
    event_type: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_admin),
    event_logger: SecurityEventLogger = Depends(get_event_logger),
) -> Any:
    """Most recent security events, newest first."""
    events = await event_logger.get_security_events(limit=limit, event_type=event_type)
    return [SecurityEventRead.model_validate(event) for event in events]


def _lock_status_read(user_id: UUID, lock_status: LockStatus) -> LockStatusRead:
    lock = lock_status.lock
    return LockStatusRead(
        user_id=user_id,
        locked=lock_status.locked,
        locked_at=lock.locked_at if lock else None,
        expires_at=lock.expires_at if lock else None,
        reason=lock.reason if lock else None,
        locked_by=lock.locked_by if lock else None,
    )


@router.get("/accounts/{user_id}", response_model=LockStatusRead)
async def get_account_lock(
    user_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    lock_service: AccountLockService = Depends(get_lock_service),
) -> Any:
    """Lock state of an account."""
    user = await UserRepository(db).get(user_id)
    if user is None:
        raise NotFoundError("User", user_id)

    return _lock_status_read(user_id, await lock_service.is_locked(user_id))


@router.put("/accounts/{user_id}", response_model=ActionResult)
async def update_account_lock(
    user_id: UUID,
    action: AccountAction,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    lock_service: AccountLockService = Depends(get_lock_service),
) -> Any:
    """
    Lock or unlock an account.

    Administrators cannot lock themselves or other administrators.
    """
    target = await UserRepository(db).get(user_id)
    if target is None:
        raise NotFoundError("User", user_id)

    if action.action == "unlock":
        removed = await lock_service.unlock(user_id, unlocked_by=current_user.id)
        message = "Account unlocked" if removed else "Account was not locked"
        return ActionResult(success=True, message=message)

    ensure_can_lock(current_user, target.id, target.role)

    if action.indefinite:
        await lock_service.lock_indefinitely(
            user_id,
            reason=action.reason,
            locked_by=current_user.id,
        )
    else:
        await lock_service.lock(
            user_id,
            reason=action.reason,
            duration_minutes=action.duration_minutes,
            locked_by=current_user.id,
        )

    lock_status = await lock_service.is_locked(user_id)
    return ActionResult(success=True, message=lock_service.lock_message(lock_status, for_admin=True))


@router.delete("/rate-limits/{identity}", response_model=ActionResult)
async def reset_rate_limit(
    identity: str,
    limit_class: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_admin),
    limiter: RateLimiter = Depends(get_rate_limiter),
    event_logger: SecurityEventLogger = Depends(get_event_logger),
) -> Any:
    """Clear rate limit counters for a client identity."""
    removed = limiter.reset(identity, limit_class)

    await event_logger.log_security_event(
        SecurityEventType.RATE_LIMIT_RESET,
        {
            "identity": identity,
            "limit_class": limit_class or [c.value for c in LimitClass],
            "removed": removed,
            "reset_by": current_user.id,
        },
    )
    return ActionResult(success=True, message=f"Cleared {removed} rate limit counter(s)")
