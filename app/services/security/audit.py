"""
Security event logging for CoolCare.

Append-only stream of lightweight security events:
- Authentication events (login success/failure, locked-account attempts)
- Account lock state changes
- Privileged deletions (assets, users, work orders)
- Rate limit rejections and administrative resets
- Incident lifecycle notifications

Events are written in their own session so a logging failure can never roll
back or block the operation that produced it. Failures are logged and sent
to Sentry, never raised.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

import sentry_sdk
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.logging import get_logger
from app.infrastructure.database.base import AsyncSessionLocal
from app.infrastructure.database.models import SecurityEvent
from app.repositories.security_event import SecurityEventRepository

logger = get_logger(__name__)


class SecurityEventType(str, Enum):
    """Security event types for the event stream."""

    # Privileged mutations
    ASSET_CREATED = "ASSET_CREATED"
    ASSET_UPDATED = "ASSET_UPDATED"
    ASSET_DELETED = "ASSET_DELETED"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    WORK_ORDER_DELETED = "WORK_ORDER_DELETED"

    # Account state
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_UNLOCKED = "ACCOUNT_UNLOCKED"

    # Authentication
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    LOGIN_ATTEMPT_LOCKED_ACCOUNT = "LOGIN_ATTEMPT_LOCKED_ACCOUNT"

    # Abuse and access control
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    RATE_LIMIT_RESET = "RATE_LIMIT_RESET"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"

    # Incidents
    SECURITY_INCIDENT_REPORTED = "SECURITY_INCIDENT_REPORTED"
    SECURITY_INCIDENT_RESOLVED = "SECURITY_INCIDENT_RESOLVED"


class EventSeverity(str, Enum):
    """Log level used when mirroring an event to the structured log."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


EVENT_SEVERITY_MAP = {
    SecurityEventType.ASSET_CREATED: EventSeverity.INFO,
    SecurityEventType.ASSET_UPDATED: EventSeverity.INFO,
    SecurityEventType.ASSET_DELETED: EventSeverity.WARNING,
    SecurityEventType.USER_CREATED: EventSeverity.INFO,
    SecurityEventType.USER_UPDATED: EventSeverity.INFO,
    SecurityEventType.USER_DELETED: EventSeverity.WARNING,
    SecurityEventType.WORK_ORDER_DELETED: EventSeverity.WARNING,
    SecurityEventType.ACCOUNT_LOCKED: EventSeverity.WARNING,
    SecurityEventType.ACCOUNT_UNLOCKED: EventSeverity.INFO,
    SecurityEventType.LOGIN_SUCCESS: EventSeverity.INFO,
    SecurityEventType.LOGIN_FAILURE: EventSeverity.WARNING,
    SecurityEventType.LOGIN_ATTEMPT_LOCKED_ACCOUNT: EventSeverity.WARNING,
    SecurityEventType.RATE_LIMIT_EXCEEDED: EventSeverity.WARNING,
    SecurityEventType.RATE_LIMIT_RESET: EventSeverity.INFO,
    SecurityEventType.UNAUTHORIZED_ACCESS: EventSeverity.ERROR,
    SecurityEventType.SECURITY_INCIDENT_REPORTED: EventSeverity.WARNING,
    SecurityEventType.SECURITY_INCIDENT_RESOLVED: EventSeverity.INFO,
}


def _event_name(event_type: Union[SecurityEventType, str]) -> str:
    if isinstance(event_type, SecurityEventType):
        return event_type.value
    return str(event_type)


class SecurityEventLogger:
    """
    Fire-and-forget writer and dashboard reader for security events.

    Free-form string types are accepted alongside SecurityEventType so new
    event kinds can be emitted before they are added to the enum.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Optional[Clock] = None,
    ):
        self.session_factory = session_factory if session_factory is not None else AsyncSessionLocal
        self.clock = clock if clock is not None else system_clock

    async def log_security_event(
        self,
        event_type: Union[SecurityEventType, str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[SecurityEvent]:
        """
        Append an event to the stream.

        Args:
            event_type: Event type
            payload: JSON-serializable details

        Returns:
            Stored event, or None when the write failed
        """
        name = _event_name(event_type)
        try:
            data = jsonable_encoder(payload or {})
            self._log_to_structured_logger(event_type, name, data)

            async with self.session_factory() as session:
                repo = SecurityEventRepository(session)
                return await repo.create({
                    "event_type": name,
                    "payload": data,
                    "created_at": self.clock.now(),
                })
        except Exception as e:
            logger.exception("Failed to log security event", event_type=name, error=str(e))
            sentry_sdk.capture_exception(e)
            return None

    def _log_to_structured_logger(
        self,
        event_type: Union[SecurityEventType, str],
        name: str,
        data: Dict[str, Any],
    ) -> None:
        severity = EVENT_SEVERITY_MAP.get(event_type, EventSeverity.INFO)
        log_data = {"security_event": name, "payload": data}

        if severity == EventSeverity.ERROR:
            logger.error("Security event", **log_data)
        elif severity == EventSeverity.WARNING:
            logger.warning("Security event", **log_data)
        else:
            logger.info("Security event", **log_data)

    async def get_security_events(
        self,
        limit: Optional[int] = None,
        event_type: Optional[Union[SecurityEventType, str]] = None,
    ) -> List[SecurityEvent]:
        """
        Read the most recent events, newest first.

        Every call re-reads current state.
        """
        limit = limit or settings.SECURITY_EVENTS_DEFAULT_LIMIT
        async with self.session_factory() as session:
            repo = SecurityEventRepository(session)
            return await repo.recent(
                limit=limit,
                event_type=_event_name(event_type) if event_type else None,
            )
