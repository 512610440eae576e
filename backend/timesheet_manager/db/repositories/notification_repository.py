"""
Notification repository for database operations.
"""

from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.notification import Notification


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notification operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Notification]:
        """List notifications addressed to a user, newest first."""
        query = self._filtered(user_id, unread_only)
        result = await self.session.execute(
            query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: UUID, unread_only: bool = False) -> int:
        subquery = self._filtered(user_id, unread_only).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())

    def _filtered(self, user_id, unread_only):
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        return query
