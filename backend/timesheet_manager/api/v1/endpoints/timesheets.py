"""
Timesheet API endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication, get_audit_context
from timesheet_manager.controllers.timesheet_controller import TimesheetController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.timesheet import TimesheetStatus
from timesheet_manager.models.user import User
from timesheet_manager.schemas.timesheet import (
    TimesheetResponse,
    TimesheetListResponse,
    TimesheetCreateRequest,
    TimesheetReopenRequest,
    TimesheetIntegrityResponse,
)
from timesheet_manager.services.audit_service import AuditContext

router = APIRouter()


@router.get("", response_model=TimesheetListResponse)
async def list_my_timesheets(
    status: Optional[TimesheetStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """List the current user's timesheets, most recent week first."""
    controller = TimesheetController(db)
    return await controller.list_timesheets(current_user, status, skip, limit)


@router.post("", response_model=TimesheetResponse)
async def get_or_create_timesheet(
    body: Optional[TimesheetCreateRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Get or create the current user's timesheet for a week. Defaults to the current week."""
    controller = TimesheetController(db, audit_context)
    week_of = body.week_start if body else None
    name = body.name if body else None
    return await controller.get_or_create_timesheet(current_user, week_of, name)


@router.get("/{timesheet_id}", response_model=TimesheetResponse)
async def get_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Get timesheet by ID, with its entries."""
    controller = TimesheetController(db)
    return await controller.get_timesheet(current_user, timesheet_id)


@router.post("/{timesheet_id}/submit", response_model=TimesheetResponse)
async def submit_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Submit timesheet for approval."""
    controller = TimesheetController(db, audit_context)
    return await controller.submit_timesheet(current_user, timesheet_id)


@router.post("/{timesheet_id}/reopen", response_model=TimesheetResponse)
async def reopen_timesheet(
    timesheet_id: UUID,
    body: Optional[TimesheetReopenRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Reopen an approved or rejected timesheet. Not available to the owner."""
    controller = TimesheetController(db, audit_context)
    comment = body.comment if body else None
    return await controller.reopen_timesheet(current_user, timesheet_id, comment)


@router.get("/{timesheet_id}/integrity", response_model=TimesheetIntegrityResponse)
async def check_timesheet_integrity(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Recompute the submission hash and decision signatures of a timesheet."""
    controller = TimesheetController(db)
    return await controller.check_integrity(current_user, timesheet_id)
