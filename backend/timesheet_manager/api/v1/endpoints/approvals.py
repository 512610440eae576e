"""
Approval API endpoints - validation queue and decisions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication, get_audit_context
from timesheet_manager.controllers.timesheet_controller import TimesheetController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.approval import ApprovalStatus
from timesheet_manager.models.user import User
from timesheet_manager.schemas.approval import (
    ApprovalDecisionRequest,
    ApprovalResponse,
    ApprovalListResponse,
)
from timesheet_manager.services.audit_service import AuditContext

router = APIRouter()


@router.get("", response_model=ApprovalListResponse)
async def list_approvals(
    status: Optional[ApprovalStatus] = Query(ApprovalStatus.PENDING),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Approvals addressed to the current user (all approvals for administrators)."""
    controller = TimesheetController(db)
    return await controller.list_approvals(current_user, status, skip, limit)


@router.post("", response_model=ApprovalResponse)
async def decide_timesheet(
    body: ApprovalDecisionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Approve or reject a submitted timesheet. Rejections require a comment."""
    controller = TimesheetController(db, audit_context)
    return await controller.decide(current_user, body)
