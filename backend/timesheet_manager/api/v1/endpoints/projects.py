"""
Project API endpoints. Reading is open to every session; changes need an administrator.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication, get_audit_context
from timesheet_manager.controllers.project_controller import ProjectController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    ProjectListResponse,
    ProjectDeleteResponse,
    ProjectValidatorsUpdate,
    SubProjectCreate,
    SubProjectResponse,
)
from timesheet_manager.services.audit_service import AuditContext

router = APIRouter()


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    q: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None),
    is_billable: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """List projects with optional filters; ``q`` matches name or code."""
    controller = ProjectController(db)
    return await controller.list_projects(q, is_active, is_billable, skip, limit)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    controller = ProjectController(db, audit_context)
    return await controller.create_project(current_user, body)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a project with its sub-projects, validators and logged hours."""
    controller = ProjectController(db)
    return await controller.get_project(project_id)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    body: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    controller = ProjectController(db, audit_context)
    try:
        return await controller.update_project(current_user, project_id, body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{project_id}", response_model=ProjectDeleteResponse)
async def delete_project(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Delete an unused project, or deactivate one that already has time logged."""
    controller = ProjectController(db, audit_context)
    return await controller.delete_project(current_user, project_id)


@router.post(
    "/{project_id}/sub-projects",
    response_model=SubProjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_sub_project(
    project_id: UUID,
    body: SubProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    controller = ProjectController(db, audit_context)
    return await controller.create_sub_project(current_user, project_id, body)


@router.put("/{project_id}/validators", response_model=ProjectResponse)
async def set_project_validators(
    project_id: UUID,
    body: ProjectValidatorsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Replace the accounts that validate timesheets logged on this project."""
    controller = ProjectController(db, audit_context)
    return await controller.set_validators(current_user, project_id, body)
