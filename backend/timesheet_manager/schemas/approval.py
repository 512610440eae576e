"""
Approval Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import date, datetime
from uuid import UUID

from timesheet_manager.models.approval import ApprovalStatus


class ApprovalDecisionRequest(BaseModel):
    """A validator's decision on a submitted timesheet."""
    timesheet_id: UUID
    status: Literal["APPROVED", "REJECTED"]
    comment: Optional[str] = Field(None, max_length=2000)


class ApprovalResponse(BaseModel):
    """Response schema for approval."""
    id: UUID
    timesheet_id: UUID
    validator_id: UUID
    status: ApprovalStatus
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None
    signature: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalSummary(ApprovalResponse):
    """Approval with enough timesheet context for a validation queue."""
    validator_name: Optional[str] = None
    owner_id: UUID
    owner_name: str
    week_start: date
    timesheet_status: str
    total_hours: float


class ApprovalListResponse(BaseModel):
    """List of approvals."""
    items: List[ApprovalSummary]
    total: int
