"""
User API endpoints. Provisioning is restricted to administrators.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication, get_audit_context
from timesheet_manager.controllers.project_controller import ProjectController
from timesheet_manager.controllers.user_controller import UserController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.schemas.project import UserProjectsResponse
from timesheet_manager.schemas.user import UserCreate, UserUpdate, UserResponse
from timesheet_manager.services.audit_service import AuditContext

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Get the current user."""
    controller = UserController(db)
    return await controller.get_current_user(current_user)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    controller = UserController(db, audit_context)
    return await controller.create_user(current_user, body)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    """Change a user's name, role or manager."""
    controller = UserController(db, audit_context)
    try:
        return await controller.update_user(current_user, user_id, body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
    audit_context: AuditContext = Depends(get_audit_context),
):
    controller = UserController(db, audit_context)
    return await controller.deactivate_user(current_user, user_id)


@router.get("/{user_id}/projects", response_model=UserProjectsResponse)
async def list_user_projects(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Projects on which the user is a designated validator."""
    controller = ProjectController(db)
    return await controller.list_user_projects(current_user, user_id)
