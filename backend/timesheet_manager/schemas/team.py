"""
Team status schemas - submission overview for validators and administrators.
"""

from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID

from timesheet_manager.models.timesheet import TimesheetStatus
from timesheet_manager.models.user import UserRole


class PendingTimesheet(BaseModel):
    id: UUID
    week_start: date
    total_hours: float


class TeamMemberStatus(BaseModel):
    id: UUID
    name: str
    email: str
    role: UserRole
    week_status: Optional[TimesheetStatus] = None
    has_submitted_this_week: bool
    total_hours_this_week: float
    last_submitted_at: Optional[datetime] = None
    pending_timesheet: Optional[PendingTimesheet] = None


class TeamStatusResponse(BaseModel):
    week_start: date
    week_end: date
    items: List[TeamMemberStatus]
