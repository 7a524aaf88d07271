"""
Tests for the security event logger.
"""
import uuid
from enum import Enum
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.services.security.audit import SecurityEventLogger, SecurityEventType


class Colour(str, Enum):
    BLUE = "blue"


class TestLogSecurityEvent:
    """Fire-and-forget appends."""

    async def test_event_is_persisted(self, event_logger, clock):
        event = await event_logger.log_security_event(
            SecurityEventType.ASSET_DELETED,
            {"asset_id": "AC-0042", "deleted_by": "admin"},
        )

        assert event is not None
        assert event.event_type == "ASSET_DELETED"
        assert event.payload == {"asset_id": "AC-0042", "deleted_by": "admin"}
        assert event.created_at == clock.now()

    async def test_payload_is_json_encoded(self, event_logger, clock):
        user_id = uuid.uuid4()
        event = await event_logger.log_security_event(
            SecurityEventType.USER_DELETED,
            {"user_id": user_id, "at": clock.now(), "colour": Colour.BLUE, "nested": {"ids": [user_id]}},
        )

        assert event.payload["user_id"] == str(user_id)
        assert event.payload["at"] == clock.now().isoformat()
        assert event.payload["colour"] == "blue"
        assert event.payload["nested"]["ids"] == [str(user_id)]

    async def test_free_form_event_type(self, event_logger):
        event = await event_logger.log_security_event("QR_CODE_REGENERATED", {"asset_id": 7})
        assert event.event_type == "QR_CODE_REGENERATED"

    async def test_missing_payload(self, event_logger):
        event = await event_logger.log_security_event(SecurityEventType.LOGIN_SUCCESS)
        assert event.payload == {}


class TestLoggingFailures:
    """Logging failures are reported, never raised."""

    async def test_storage_failure_is_swallowed(self, clock):
        def failing_factory():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        logger = SecurityEventLogger(failing_factory, clock)

        with patch("app.services.security.audit.sentry_sdk.capture_exception") as capture:
            result = await logger.log_security_event(SecurityEventType.ASSET_DELETED, {"asset_id": 1})

        assert result is None
        capture.assert_called_once()
        assert isinstance(capture.call_args.args[0], OperationalError)

    async def test_unserializable_payload_is_swallowed(self, event_logger):
        with patch("app.services.security.audit.sentry_sdk.capture_exception") as capture:
            result = await event_logger.log_security_event(
                SecurityEventType.ASSET_UPDATED,
                {"handle": object()},
            )

        assert result is None
        capture.assert_called_once()


class TestGetSecurityEvents:
    """Dashboard read-back."""

    async def test_newest_first(self, event_logger, clock):
        for i in range(5):
            await event_logger.log_security_event(SecurityEventType.ASSET_CREATED, {"n": i})
            clock.advance(seconds=1)

        events = await event_logger.get_security_events(limit=3)

        assert [e.payload["n"] for e in events] == [4, 3, 2]

    async def test_filter_by_type(self, event_logger):
        await event_logger.log_security_event(SecurityEventType.ASSET_DELETED, {})
        await event_logger.log_security_event(SecurityEventType.USER_DELETED, {})
        await event_logger.log_security_event(SecurityEventType.ASSET_DELETED, {})

        events = await event_logger.get_security_events(event_type=SecurityEventType.ASSET_DELETED)

        assert len(events) == 2
        assert {e.event_type for e in events} == {"ASSET_DELETED"}

    async def test_fresh_call_rereads_state(self, event_logger):
        assert await event_logger.get_security_events() == []
        await event_logger.log_security_event(SecurityEventType.LOGIN_SUCCESS, {})

        assert len(await event_logger.get_security_events()) == 1

    @pytest.mark.parametrize("limit", [1, 2])
    async def test_limit(self, event_logger, limit):
        for _ in range(3):
            await event_logger.log_security_event(SecurityEventType.LOGIN_FAILURE, {})

        assert len(await event_logger.get_security_events(limit=limit)) == limit
