"""
Time entry API endpoints.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication, get_audit_context
from timesheet_manager.controllers.time_entry_controller import TimeEntryController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.schemas.timesheet import (
    TimeEntryCreate,
    TimeEntryUpdate,
    TimeEntryResponse,
    TimeEntryListResponse,
)
from timesheet_manager.services.audit_service import AuditContext

router = APIRouter()


@router.get("", response_model=TimeEntryListResponse)
async def list_time_entries(
    user_id: Optional[UUID] = Query(None, description="Another user's entries (administrators only)"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    project_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """List time entries, newest first."""
    controller = TimeEntryController(db)
    return await controller.list_entries(
        current_user,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        project_id=project_id,
        page=page,
        limit=limit,
    )


@router.post("", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_time_entry(
    body: TimeEntryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Log time. The entry is filed in the owner's timesheet for its week."""
    controller = TimeEntryController(db, audit_context)
    try:
        return await controller.create_entry(current_user, body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{entry_id}", response_model=TimeEntryResponse)
async def update_time_entry(
    entry_id: UUID,
    body: TimeEntryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Update a time entry while its timesheet is open."""
    controller = TimeEntryController(db, audit_context)
    try:
        return await controller.update_entry(current_user, entry_id, body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Delete a time entry while its timesheet is open."""
    controller = TimeEntryController(db, audit_context)
    await controller.delete_entry(current_user, entry_id)
