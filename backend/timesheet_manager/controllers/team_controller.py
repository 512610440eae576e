"""
Team controller.
"""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.user import User
from timesheet_manager.schemas.team import TeamStatusResponse
from timesheet_manager.services.team_service import TeamService


class TeamController(BaseController):
    """Controller for the team status overview."""

    def __init__(self, session: AsyncSession):
        self.team_service = TeamService(session)

    async def get_team_status(self, actor: User, week_of: Optional[date] = None) -> TeamStatusResponse:
        return await self.team_service.get_team_status(actor, week_of)
