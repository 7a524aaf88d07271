"""
Security incident store for CoolCare.

Incidents are the durable, severity-classified subset of security activity:
created when a security-relevant condition fires, flipped to resolved by an
administrator, and never deleted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.domain.schemas.security import IncidentFilter, IncidentSeverity, IncidentType
from app.infrastructure.database.models import SecurityIncident
from app.repositories.security_incident import SecurityIncidentRepository
from app.services.security.audit import SecurityEventLogger, SecurityEventType

logger = get_logger(__name__)


@dataclass
class IncidentPage:
    """One page of incidents and the number of rows matching the filter."""
    items: List[SecurityIncident]
    total: int
    limit: int
    offset: int


@dataclass
class IncidentStatistics:
    """Incident counts computed from current store state."""
    total_incidents: int
    unresolved_count: int
    count_by_type: Dict[str, int] = field(default_factory=dict)
    count_by_severity: Dict[str, int] = field(default_factory=dict)


class SecurityIncidentService:
    """Report, resolve, query and summarise security incidents."""

    def __init__(
        self,
        db: AsyncSession,
        event_logger: Optional[SecurityEventLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.clock = clock if clock is not None else system_clock
        self.event_logger = event_logger if event_logger is not None else SecurityEventLogger(clock=self.clock)
        self.repo = SecurityIncidentRepository(db)

    async def report_incident(
        self,
        type: IncidentType,
        description: str,
        severity: IncidentSeverity = IncidentSeverity.MEDIUM,
        metadata: Optional[Dict[str, Any]] = None,
        related_user_ids: Optional[List[UUID]] = None,
        *,
        user_id: Optional[UUID] = None,
        username: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SecurityIncident:
        """
        Record a new, unresolved incident.

        Args:
            type: Incident category
            description: Human-readable summary
            severity: Defaults to MEDIUM
            metadata: Structured details
            related_user_ids: Users involved besides the subject
            user_id: Subject of the incident
            username: Subject's login name at the time
            ip_address: Originating address
            user_agent: Originating client

        Returns:
            Created incident
        """
        incident = await self.repo.create({
            "type": IncidentType(type),
            "severity": IncidentSeverity(severity),
            "description": description,
            "incident_metadata": metadata,
            "related_user_ids": [str(uid) for uid in related_user_ids] if related_user_ids else None,
            "user_id": user_id,
            "username": username,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "resolved": False,
            "created_at": self.clock.now(),
        })

        logger.warning(
            "Security incident reported",
            incident_id=incident.id,
            type=incident.type.value,
            severity=incident.severity.value,
        )
        await self.event_logger.log_security_event(
            SecurityEventType.SECURITY_INCIDENT_REPORTED,
            {
                "incident_id": incident.id,
                "type": incident.type,
                "severity": incident.severity,
                "user_id": user_id,
            },
        )
        return incident

    async def resolve_incident(
        self,
        incident_id: int,
        resolved_by: Optional[UUID] = None,
    ) -> SecurityIncident:
        """
        Mark an incident as resolved.

        Resolving an already resolved incident returns it unchanged.

        Raises:
            NotFoundError: No incident with this id
        """
        incident = await self.repo.get(incident_id)
        if incident is None:
            raise NotFoundError("SecurityIncident", incident_id)

        if incident.resolved:
            return incident

        incident = await self.repo.update(
            incident_id,
            {
                "resolved": True,
                "resolved_at": self.clock.now(),
                "resolved_by": resolved_by,
            },
        )

        logger.info(
            "Security incident resolved",
            incident_id=incident_id,
            resolved_by=str(resolved_by) if resolved_by else None,
        )
        await self.event_logger.log_security_event(
            SecurityEventType.SECURITY_INCIDENT_RESOLVED,
            {"incident_id": incident_id, "resolved_by": resolved_by},
        )
        return incident

    async def query_incidents(
        self,
        filters: Optional[IncidentFilter] = None,
    ) -> IncidentPage:
        """Incidents matching a filter, newest first."""
        filters = filters or IncidentFilter()
        items, total = await self.repo.search(filters)
        return IncidentPage(
            items=items,
            total=total,
            limit=filters.limit,
            offset=filters.offset,
        )

    async def get_statistics(self) -> IncidentStatistics:
        count_by_type = await self.repo.count_grouped(SecurityIncident.type)
        count_by_severity = await self.repo.count_grouped(SecurityIncident.severity)

        return IncidentStatistics(
            total_incidents=await self.repo.count(),
            unresolved_count=await self.repo.count_unresolved(),
            count_by_type=count_by_type,
            count_by_severity=count_by_severity,
        )
