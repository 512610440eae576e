"""
Team status endpoint for validators and administrators.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication
from timesheet_manager.controllers.team_controller import TeamController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.schemas.team import TeamStatusResponse

router = APIRouter()


@router.get("/status", response_model=TeamStatusResponse)
async def get_team_status(
    week_of: Optional[date] = Query(None, description="Any day of the week to report; defaults to today"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    controller = TeamController(db)
    return await controller.get_team_status(current_user, week_of)
