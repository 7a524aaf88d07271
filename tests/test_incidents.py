"""
Tests for the security incident store.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import NotFoundError
from app.domain.schemas.security import (
    IncidentFilter,
    IncidentRead,
    IncidentSeverity,
    IncidentType,
)
from app.services.security.audit import SecurityEventType
from app.services.security.incidents import SecurityIncidentService


@pytest.fixture
def incident_service(db_session, event_logger, clock) -> SecurityIncidentService:
    return SecurityIncidentService(db_session, event_logger, clock)


async def report_many(service, clock, count, **kwargs):
    incidents = []
    for i in range(count):
        incidents.append(
            await service.report_incident(
                kwargs.get("type", IncidentType.SUSPICIOUS_ACTIVITY),
                f"incident {i}",
                severity=kwargs.get("severity", IncidentSeverity.MEDIUM),
            )
        )
        clock.advance(seconds=1)
    return incidents


class TestReportIncident:
    """Creating incidents."""

    async def test_report_defaults(self, incident_service, clock):
        incident = await incident_service.report_incident(
            IncidentType.ASSET_DELETED,
            "Asset AC-0042 deleted",
        )

        assert incident.id is not None
        assert incident.severity == IncidentSeverity.MEDIUM
        assert incident.resolved is False
        assert incident.resolved_at is None
        assert incident.created_at == clock.now()

    async def test_report_with_metadata_and_related_users(self, incident_service, technician_user):
        related = [technician_user.id, uuid.uuid4()]
        incident = await incident_service.report_incident(
            IncidentType.USER_DELETED,
            "User removed",
            severity=IncidentSeverity.HIGH,
            metadata={"site": "Bangkok HQ", "floor": 3},
            related_user_ids=related,
            user_id=technician_user.id,
            ip_address="203.0.113.7",
        )

        read = IncidentRead.model_validate(incident)
        assert read.metadata == {"site": "Bangkok HQ", "floor": 3}
        assert read.related_user_ids == related
        assert read.user_id == technician_user.id
        assert read.ip_address == "203.0.113.7"

    async def test_report_emits_event(self, incident_service, event_logger):
        incident = await incident_service.report_incident(
            IncidentType.SECURITY_BREACH,
            "Breach",
            severity=IncidentSeverity.CRITICAL,
        )

        events = await event_logger.get_security_events()
        assert events[0].event_type == SecurityEventType.SECURITY_INCIDENT_REPORTED.value
        assert events[0].payload["incident_id"] == incident.id
        assert events[0].payload["severity"] == "CRITICAL"


class TestResolveIncident:
    """Resolving incidents."""

    async def test_resolve_sets_timestamp(self, incident_service, admin_user, clock):
        incident = await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "x")
        clock.advance(minutes=10)

        resolved = await incident_service.resolve_incident(incident.id, resolved_by=admin_user.id)

        assert resolved.resolved is True
        assert resolved.resolved_at == clock.now()
        assert resolved.resolved_by == admin_user.id

    async def test_resolve_is_idempotent(self, incident_service, event_logger, clock):
        incident = await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "x")
        first = await incident_service.resolve_incident(incident.id)
        resolved_at = first.resolved_at

        clock.advance(hours=1)
        second = await incident_service.resolve_incident(incident.id)

        assert second.resolved is True
        assert second.resolved_at == resolved_at
        resolved_events = await event_logger.get_security_events(
            event_type=SecurityEventType.SECURITY_INCIDENT_RESOLVED,
        )
        assert len(resolved_events) == 1

    async def test_resolve_unknown(self, incident_service):
        with pytest.raises(NotFoundError):
            await incident_service.resolve_incident(9999)


class TestQueryIncidents:
    """Filtering and pagination."""

    async def test_resolved_filter(self, incident_service):
        incident = await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "x")

        unresolved = await incident_service.query_incidents(IncidentFilter(resolved=False))
        assert incident.id in [i.id for i in unresolved.items]

        await incident_service.resolve_incident(incident.id)

        unresolved = await incident_service.query_incidents(IncidentFilter(resolved=False))
        assert incident.id not in [i.id for i in unresolved.items]

        resolved = await incident_service.query_incidents(IncidentFilter(resolved=True))
        match = [i for i in resolved.items if i.id == incident.id]
        assert len(match) == 1
        assert match[0].resolved_at is not None

    async def test_filter_by_type_and_severity(self, incident_service, clock):
        await report_many(incident_service, clock, 2, type=IncidentType.LOGIN_FAILURE, severity=IncidentSeverity.LOW)
        await report_many(incident_service, clock, 3, type=IncidentType.LOGIN_FAILURE, severity=IncidentSeverity.HIGH)
        await report_many(incident_service, clock, 1, type=IncidentType.ASSET_DELETED, severity=IncidentSeverity.HIGH)

        page = await incident_service.query_incidents(
            IncidentFilter(type=IncidentType.LOGIN_FAILURE, severity=IncidentSeverity.HIGH)
        )

        assert page.total == 3
        assert all(i.type == IncidentType.LOGIN_FAILURE for i in page.items)
        assert all(i.severity == IncidentSeverity.HIGH for i in page.items)

    async def test_filter_by_date_range(self, incident_service, clock):
        start = clock.now()
        incidents = await report_many(incident_service, clock, 5)

        page = await incident_service.query_incidents(
            IncidentFilter(
                start_date=start + timedelta(seconds=1),
                end_date=start + timedelta(seconds=3),
            )
        )

        assert [i.id for i in page.items] == [incidents[3].id, incidents[2].id, incidents[1].id]
        assert page.total == 3

    async def test_pagination_is_disjoint_and_complete(self, incident_service, clock):
        incidents = await report_many(incident_service, clock, 15)

        first = await incident_service.query_incidents(IncidentFilter(limit=10, offset=0))
        second = await incident_service.query_incidents(IncidentFilter(limit=10, offset=10))

        first_ids = [i.id for i in first.items]
        second_ids = [i.id for i in second.items]
        assert len(first_ids) == 10
        assert len(second_ids) == 5
        assert set(first_ids).isdisjoint(second_ids)
        assert first_ids + second_ids == [i.id for i in reversed(incidents)]
        assert first.total == second.total == 15

    async def test_same_instant_ordered_by_insertion(self, incident_service):
        a = await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "a")
        b = await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "b")

        page = await incident_service.query_incidents()
        assert [i.id for i in page.items] == [b.id, a.id]

    async def test_total_counts_matching_rows_only(self, incident_service, clock):
        await report_many(incident_service, clock, 4, type=IncidentType.LOGIN_FAILURE)
        await report_many(incident_service, clock, 2, type=IncidentType.ASSET_DELETED)

        page = await incident_service.query_incidents(
            IncidentFilter(type=IncidentType.ASSET_DELETED, limit=1)
        )

        assert len(page.items) == 1
        assert page.total == 2


class TestIncidentFilter:
    """Boundary validation of query parameters."""

    def test_start_after_end_rejected(self, clock):
        with pytest.raises(PydanticValidationError):
            IncidentFilter(start_date=clock.now(), end_date=clock.now() - timedelta(days=1))

    def test_naive_dates_read_as_utc(self):
        filters = IncidentFilter(
            start_date=datetime(2026, 3, 1),
            end_date=datetime(2026, 3, 2, tzinfo=timezone.utc),
        )

        assert filters.start_date == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert filters.end_date.tzinfo is not None

    @pytest.mark.parametrize("limit", [0, -1, 10_000])
    def test_limit_bounds(self, limit):
        with pytest.raises(PydanticValidationError):
            IncidentFilter(limit=limit)

    def test_negative_offset_rejected(self):
        with pytest.raises(PydanticValidationError):
            IncidentFilter(offset=-1)

    def test_unknown_type_rejected(self):
        with pytest.raises(PydanticValidationError):
            IncidentFilter(type="NOT_A_TYPE")

    def test_defaults(self):
        filters = IncidentFilter()
        assert filters.limit == 50
        assert filters.offset == 0


class TestStatistics:
    """Aggregated counts."""

    async def test_end_to_end_scenario(self, incident_service):
        await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "1", severity=IncidentSeverity.LOW)
        await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "2", severity=IncidentSeverity.LOW)
        await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "3", severity=IncidentSeverity.HIGH)
        await incident_service.report_incident(IncidentType.ASSET_DELETED, "4", severity=IncidentSeverity.HIGH)

        stats = await incident_service.get_statistics()

        assert stats.total_incidents == 4
        assert stats.unresolved_count == 4
        assert stats.count_by_type == {"LOGIN_FAILURE": 3, "ASSET_DELETED": 1}
        assert stats.count_by_severity == {"LOW": 2, "HIGH": 2}

    async def test_totals_match_group_sums(self, incident_service, clock):
        severities = list(IncidentSeverity)
        types = list(IncidentType)
        for i in range(17):
            await incident_service.report_incident(
                types[i % len(types)],
                f"incident {i}",
                severity=severities[(i * 3) % len(severities)],
            )

        stats = await incident_service.get_statistics()

        assert stats.total_incidents == 17
        assert sum(stats.count_by_type.values()) == stats.total_incidents
        assert sum(stats.count_by_severity.values()) == stats.total_incidents

    async def test_unresolved_count_tracks_resolution(self, incident_service):
        first = await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "1")
        await incident_service.report_incident(IncidentType.LOGIN_FAILURE, "2")
        await incident_service.resolve_incident(first.id)

        stats = await incident_service.get_statistics()
        assert stats.total_incidents == 2
        assert stats.unresolved_count == 1

    async def test_empty_store(self, incident_service):
        stats = await incident_service.get_statistics()

        assert stats.total_incidents == 0
        assert stats.unresolved_count == 0
        assert stats.count_by_type == {}
        assert stats.count_by_severity == {}


class TestSeverityOrdering:
    """Severity compares by rank, not by string value."""

    def test_order(self):
        assert IncidentSeverity.LOW < IncidentSeverity.MEDIUM < IncidentSeverity.HIGH < IncidentSeverity.CRITICAL
        assert IncidentSeverity.CRITICAL > IncidentSeverity.LOW
        assert sorted([IncidentSeverity.HIGH, IncidentSeverity.LOW, IncidentSeverity.CRITICAL]) == [
            IncidentSeverity.LOW,
            IncidentSeverity.HIGH,
            IncidentSeverity.CRITICAL,
        ]
