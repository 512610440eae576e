"""
Audit log API endpoints. Read and verify only; there is no mutation surface.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication
from timesheet_manager.controllers.audit_controller import AuditController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.user import User
from timesheet_manager.schemas.audit import (
    AuditLogResponse,
    AuditLogListResponse,
    AuditVerificationResponse,
)

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    action: Optional[AuditAction] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """List audit records, newest first."""
    controller = AuditController(db)
    return await controller.list_audit_logs(
        current_user,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        action=action,
        page=page,
        limit=limit,
    )


@router.get("/{record_id}", response_model=AuditLogResponse)
async def get_audit_log(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    controller = AuditController(db)
    return await controller.get_audit_log(current_user, record_id)


@router.get("/{record_id}/verify", response_model=AuditVerificationResponse)
async def verify_audit_log(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Recompute the record's signature and compare it with the stored one."""
    controller = AuditController(db)
    return await controller.verify_audit_log(current_user, record_id)
