"""
Security event repository.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import SecurityEvent
from app.repositories.base import BaseRepository


class SecurityEventRepository(BaseRepository[SecurityEvent]):
    """Append and read-back for the security event stream."""

    def __init__(self, db: AsyncSession):
        super().__init__(SecurityEvent, db)

    async def recent(
        self,
        limit: int,
        event_type: Optional[str] = None,
    ) -> List[SecurityEvent]:
        """
        Most recent events first.

        Args:
            limit: Maximum number of events
            event_type: Restrict to one event type

        Returns:
            List of events in reverse insertion order
        """
        stmt = select(SecurityEvent)
        if event_type:
            stmt = stmt.where(SecurityEvent.event_type == event_type)
        stmt = stmt.order_by(SecurityEvent.id.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
