"""
Account lock repository.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import AccountLock
from app.repositories.base import BaseRepository


class AccountLockRepository(BaseRepository[AccountLock]):
    """Persistence for the one-row-per-user lock table."""

    def __init__(self, db: AsyncSession):
        super().__init__(AccountLock, db)

    async def get_by_user(
        self,
        user_id: UUID,
        *,
        for_update: bool = False,
    ) -> Optional[AccountLock]:
        stmt = select(AccountLock).where(AccountLock.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: UUID,
        data: Dict[str, Any],
    ) -> AccountLock:
        """
        Replace the lock row for a user in a single transaction.

        A concurrent insert for the same user trips the unique constraint; the
        loser then overwrites the winner's row so the table always reflects
        one complete write.
        """
        try:
            lock = await self.get_by_user(user_id, for_update=True)
            if lock is None:
                lock = AccountLock(user_id=user_id, **data)
                self.db.add(lock)
            else:
                for field, value in data.items():
                    setattr(lock, field, value)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            lock = await self.get_by_user(user_id, for_update=True)
            if lock is None:
                # The conflicting row was deleted before we could read it.
                lock = AccountLock(user_id=user_id, **data)
                self.db.add(lock)
            else:
                for field, value in data.items():
                    setattr(lock, field, value)
            await self.db.commit()

        await self.db.refresh(lock)
        return lock

    async def delete_by_user(self, user_id: UUID) -> bool:
        """
        Delete the lock row for a user.

        Returns:
            True if a row was removed
        """
        stmt = delete(AccountLock).where(AccountLock.user_id == user_id)
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0

    async def delete_expired(self, now: datetime) -> int:
        """Delete every lock whose expiry has passed."""
        stmt = delete(AccountLock).where(
            AccountLock.expires_at.is_not(None),
            AccountLock.expires_at <= now,
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0
