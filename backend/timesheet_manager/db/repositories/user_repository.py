"""
User repository for database operations.
"""

from typing import Optional, List, Iterable
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.user import User, UserRole


class UserRepository(BaseRepository[User]):
    """Repository for user operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        result = await self.session.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_many(self, ids: Iterable[UUID]) -> List[User]:
        """Get users by a set of IDs."""
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def list_active_ids_by_roles(self, roles: Iterable[UserRole]) -> List[UUID]:
        """IDs of active users holding any of the given roles."""
        result = await self.session.execute(
            select(User.id).where(
                User.is_active.is_(True),
                User.role.in_(list(roles)),
            )
        )
        return list(result.scalars().all())

    async def get_manager_id(self, user_id: UUID) -> Optional[UUID]:
        """Direct manager of a user, without loading the full row."""
        result = await self.session.execute(
            select(User.manager_id).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_subordinate_ids(self, manager_id: UUID) -> List[UUID]:
        """IDs of users whose direct manager is manager_id."""
        result = await self.session.execute(
            select(User.id).where(User.manager_id == manager_id)
        )
        return list(result.scalars().all())
