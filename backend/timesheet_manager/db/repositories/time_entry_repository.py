"""
Time entry repository for database operations.
"""

from typing import Iterable, Optional, List
from uuid import UUID
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.timesheet import TimeEntry


class TimeEntryRepository(BaseRepository[TimeEntry]):
    """Repository for time entry operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(TimeEntry, session)

    async def list_by_timesheet(self, timesheet_id: UUID) -> List[TimeEntry]:
        """List entries for a timesheet, ordered by date."""
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.timesheet_id == timesheet_id)
            .order_by(TimeEntry.date, TimeEntry.start_time, TimeEntry.created_at)
        )
        return list(result.scalars().all())

    async def list_project_ids(self, timesheet_id: UUID) -> List[UUID]:
        """Distinct projects referenced by a timesheet's entries."""
        result = await self.session.execute(
            select(TimeEntry.project_id)
            .where(TimeEntry.timesheet_id == timesheet_id)
            .distinct()
        )
        return list(result.scalars().all())

    async def list_for_user(
        self,
        user_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        project_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[TimeEntry]:
        """List a user's entries, newest first."""
        query = self._filtered(user_id, start_date, end_date, project_id)
        result = await self.session.execute(
            query.order_by(TimeEntry.date.desc(), TimeEntry.start_time.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_for_user(
        self,
        user_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        project_id: Optional[UUID] = None,
    ) -> int:
        """Count a user's entries matching the same filters as list_for_user."""
        subquery = self._filtered(user_id, start_date, end_date, project_id).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())

    def _filtered(self, user_id, start_date, end_date, project_id):
        query = select(TimeEntry).where(TimeEntry.user_id == user_id)
        if start_date is not None:
            query = query.where(TimeEntry.date >= start_date)
        if end_date is not None:
            query = query.where(TimeEntry.date <= end_date)
        if project_id is not None:
            query = query.where(TimeEntry.project_id == project_id)
        return query

    async def list_user_ids_for_projects(self, project_ids: Iterable[UUID]) -> List[UUID]:
        """Users who have logged time on any of the given projects."""
        project_ids = list(project_ids)
        if not project_ids:
            return []
        result = await self.session.execute(
            select(TimeEntry.user_id)
            .where(TimeEntry.project_id.in_(project_ids))
            .distinct()
        )
        return list(result.scalars().all())
