"""
Base repository implementation.
"""
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations."""

    def __init__(
        self,
        model: Type[ModelType],
        db: AsyncSession,
    ):
        self.model = model
        self.db = db

    async def create(
        self,
        data: Dict[str, Any],
    ) -> ModelType:
        """
        Create a new record.

        Args:
            data: Record data

        Returns:
            Created record
        """
        db_obj = self.model(**data)
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)
        return db_obj

    async def get(
        self,
        id: Any,
    ) -> Optional[ModelType]:
        """
        Get record by ID.

        Args:
            id: Record ID

        Returns:
            Record if found
        """
        stmt = select(self.model).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self) -> int:
        """Count all records."""
        stmt = select(func.count()).select_from(self.model)
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def update(
        self,
        id: Any,
        data: Dict[str, Any],
    ) -> Optional[ModelType]:
        """
        Update a record.

        Args:
            id: Record ID
            data: Update data

        Returns:
            Updated record if found
        """
        db_obj = await self.get(id)
        if not db_obj:
            return None

        for field, value in data.items():
            setattr(db_obj, field, value)

        await self.db.commit()
        await self.db.refresh(db_obj)
        return db_obj
