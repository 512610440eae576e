"""
Health repository.
Checks the database connection and the timesheet schema.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text

from timesheet_manager.models.timesheet import Timesheet


class HealthRepository:
    """Read-only checks used by the health endpoint."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def check_database(self) -> bool:
        """True when a trivial round trip to the database succeeds."""
        try:
            result = await self.session.execute(text("SELECT 1"))
            return result.scalar() == 1
        except (SQLAlchemyError, OSError):
            return False

    async def check_schema(self) -> bool:
        """True when the timesheets table exists and can be queried."""
        try:
            await self.session.execute(select(Timesheet.id).limit(1))
            return True
        except SQLAlchemyError:
            return False
