"""
Timesheet and time entry Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
import datetime as dt
from uuid import UUID

from timesheet_manager.models.timesheet import TimesheetStatus

TIME_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"


class TimeEntryCreate(BaseModel):
    """Create schema for time entry."""
    date: dt.date
    duration: int = Field(..., gt=0, description="Duration in minutes")
    project_id: UUID
    sub_project_id: Optional[UUID] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    description: Optional[str] = Field(None, max_length=2000)
    is_billable: Optional[bool] = None
    # Administrators may log time on behalf of another user
    user_id: Optional[UUID] = None

    @model_validator(mode="after")
    def _check_time_range(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimeEntryUpdate(BaseModel):
    """Update schema for time entry. Only provided fields change."""
    date: Optional[dt.date] = None
    duration: Optional[int] = Field(None, gt=0)
    project_id: Optional[UUID] = None
    sub_project_id: Optional[UUID] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    description: Optional[str] = Field(None, max_length=2000)
    is_billable: Optional[bool] = None


class TimeEntryResponse(BaseModel):
    """Response schema for time entry."""
    id: UUID
    user_id: UUID
    project_id: UUID
    sub_project_id: Optional[UUID] = None
    timesheet_id: Optional[UUID] = None
    date: dt.date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: int
    description: Optional[str] = None
    is_billable: bool

    class Config:
        from_attributes = True


class TimeEntryListResponse(BaseModel):
    """Paginated list of time entries."""
    items: List[TimeEntryResponse]
    total: int
    page: int
    limit: int


class TimesheetResponse(BaseModel):
    """Response schema for timesheet."""
    id: UUID
    user_id: UUID
    name: Optional[str] = None
    week_start: dt.date
    week_end: dt.date
    status: TimesheetStatus
    total_minutes: int
    total_hours: float
    submitted_at: Optional[dt.datetime] = None
    locked_at: Optional[dt.datetime] = None
    locked_by_id: Optional[UUID] = None
    integrity_hash: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime
    entries: Optional[List[TimeEntryResponse]] = None

    class Config:
        from_attributes = True


class TimesheetListResponse(BaseModel):
    """Schema for timesheet list response."""
    items: List[TimesheetResponse]
    total: int


class TimesheetCreateRequest(BaseModel):
    """Get-or-create the acting user's timesheet for a week."""
    week_start: Optional[dt.date] = Field(None, description="Any date in the target week; defaults to today")
    name: Optional[str] = Field(None, max_length=200)


class TimesheetReopenRequest(BaseModel):
    """Optional human comment sent to the owner on reopen."""
    comment: Optional[str] = Field(None, max_length=2000)


class DecisionIntegrity(BaseModel):
    approval_id: UUID
    validator_id: UUID
    status: str
    valid: bool


class TimesheetIntegrityResponse(BaseModel):
    """Result of recomputing every signature attached to a timesheet."""
    timesheet_id: UUID
    submission_valid: Optional[bool] = None
    decisions: List[DecisionIntegrity] = []
