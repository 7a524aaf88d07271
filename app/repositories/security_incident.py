"""
Security incident repository.
"""
from typing import Dict, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.schemas.security import IncidentFilter
from app.infrastructure.database.models import SecurityIncident
from app.repositories.base import BaseRepository


class SecurityIncidentRepository(BaseRepository[SecurityIncident]):
    """Filtering, pagination and aggregation over security incidents."""

    def __init__(self, db: AsyncSession):
        super().__init__(SecurityIncident, db)

    def _conditions(self, filters: IncidentFilter) -> list:
        conditions = []
        if filters.type is not None:
            conditions.append(SecurityIncident.type == filters.type)
        if filters.severity is not None:
            conditions.append(SecurityIncident.severity == filters.severity)
        if filters.resolved is not None:
            conditions.append(SecurityIncident.resolved == filters.resolved)
        if filters.start_date is not None:
            conditions.append(SecurityIncident.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(SecurityIncident.created_at <= filters.end_date)
        return conditions

    async def search(
        self,
        filters: IncidentFilter,
    ) -> Tuple[List[SecurityIncident], int]:
        """
        Page through incidents matching a filter, newest first.

        Args:
            filters: Typed filter with limit/offset

        Returns:
            Tuple of (page items, total number of matching rows)
        """
        conditions = self._conditions(filters)

        stmt = (
            select(SecurityIncident)
            .where(*conditions)
            .order_by(SecurityIncident.created_at.desc(), SecurityIncident.id.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        result = await self.db.execute(stmt)
        items = list(result.scalars().all())

        count_stmt = select(func.count()).select_from(SecurityIncident).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar_one()

        return items, int(total)

    async def count_unresolved(self) -> int:
        stmt = select(func.count()).select_from(SecurityIncident).where(
            SecurityIncident.resolved.is_(False)
        )
        return int((await self.db.execute(stmt)).scalar_one())

    async def count_grouped(self, column) -> Dict[str, int]:
        """Count incidents grouped by a column (type or severity)."""
        stmt = select(column, func.count()).group_by(column)
        result = await self.db.execute(stmt)
        return {
            (key.value if hasattr(key, "value") else str(key)): int(count)
            for key, count in result.all()
        }
