"""
Timesheet repository for database operations.
"""

from typing import Dict, Iterable, Optional, List, Tuple
from uuid import UUID
from datetime import date, datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.timesheet import Timesheet, TimeEntry, TimesheetStatus


class TimesheetRepository(BaseRepository[Timesheet]):
    """Repository for timesheet operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Timesheet, session)

    async def get_for_update(self, id: UUID) -> Optional[Timesheet]:
        """
        Get timesheet by ID holding a row lock until the transaction ends.

        Serializes concurrent transitions on the same sheet; refreshes any
        copy already in the identity map.
        """
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_user_and_week(
        self,
        user_id: UUID,
        week_start: date,
        for_update: bool = False,
    ) -> Optional[Timesheet]:
        """Get timesheet by owner and week."""
        query = select(Timesheet).where(
            Timesheet.user_id == user_id,
            Timesheet.week_start == week_start,
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        user_id: UUID,
        status: Optional[TimesheetStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[Timesheet]:
        """List a user's timesheets, most recent week first."""
        query = self._filtered(user_id, status)
        result = await self.session.execute(
            query.order_by(Timesheet.week_start.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_user(self, user_id: UUID, status: Optional[TimesheetStatus] = None) -> int:
        """Count a user's timesheets matching the same filters as list_by_user."""
        subquery = self._filtered(user_id, status).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())

    def _filtered(self, user_id, status):
        query = select(Timesheet).where(Timesheet.user_id == user_id)
        if status is not None:
            query = query.where(Timesheet.status == status)
        return query

    async def entry_stats(self, timesheet_id: UUID) -> Tuple[int, int]:
        """(entry count, summed minutes) for a timesheet, read from the store."""
        result = await self.session.execute(
            select(
                func.count(TimeEntry.id),
                func.coalesce(func.sum(TimeEntry.duration), 0),
            ).where(TimeEntry.timesheet_id == timesheet_id)
        )
        count, total = result.one()
        return int(count), int(total)

    async def list_for_users_in_week(self, user_ids: Iterable[UUID], week_start: date) -> List[Timesheet]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        result = await self.session.execute(
            select(Timesheet).where(
                Timesheet.user_id.in_(user_ids),
                Timesheet.week_start == week_start,
            )
        )
        return list(result.scalars().all())

    async def list_for_users_by_status(
        self,
        user_ids: Iterable[UUID],
        status: TimesheetStatus,
    ) -> List[Timesheet]:
        """Sheets of several users in one status, most recent week first."""
        user_ids = list(user_ids)
        if not user_ids:
            return []
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.user_id.in_(user_ids), Timesheet.status == status)
            .order_by(Timesheet.week_start.desc())
        )
        return list(result.scalars().all())

    async def last_submitted_at(self, user_ids: Iterable[UUID]) -> Dict[UUID, datetime]:
        """Latest submission timestamp per user; users who never submitted are absent."""
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(Timesheet.user_id, func.max(Timesheet.submitted_at))
            .where(Timesheet.user_id.in_(user_ids), Timesheet.submitted_at.is_not(None))
            .group_by(Timesheet.user_id)
        )
        return {user_id: submitted_at for user_id, submitted_at in result.all()}
