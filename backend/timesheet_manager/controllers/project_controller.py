"""
Project controller.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
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
    UserProjectsResponse,
)
from timesheet_manager.services.audit_service import AuditContext
from timesheet_manager.services.project_service import ProjectService


class ProjectController(BaseController):
    """Controller for project operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.project_service = ProjectService(session, audit_context=audit_context)

    async def list_projects(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_billable: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> ProjectListResponse:
        return await self.project_service.list_projects(search, is_active, is_billable, skip, limit)

    async def get_project(self, project_id: UUID) -> ProjectResponse:
        return await self.project_service.get_project(project_id)

    async def create_project(self, actor: User, data: ProjectCreate) -> ProjectResponse:
        return await self.project_service.create_project(actor, data)

    async def update_project(self, actor: User, project_id: UUID, data: ProjectUpdate) -> ProjectResponse:
        return await self.project_service.update_project(actor, project_id, data)

    async def delete_project(self, actor: User, project_id: UUID) -> ProjectDeleteResponse:
        return await self.project_service.delete_project(actor, project_id)

    async def create_sub_project(
        self,
        actor: User,
        project_id: UUID,
        data: SubProjectCreate,
    ) -> SubProjectResponse:
        return await self.project_service.create_sub_project(actor, project_id, data)

    async def set_validators(
        self,
        actor: User,
        project_id: UUID,
        data: ProjectValidatorsUpdate,
    ) -> ProjectResponse:
        return await self.project_service.set_validators(actor, project_id, data)

    async def list_user_projects(self, actor: User, user_id: UUID) -> UserProjectsResponse:
        return await self.project_service.list_user_projects(actor, user_id)
