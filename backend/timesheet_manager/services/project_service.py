"""
Project service - administration of projects, sub-projects and project validators.

Every mutation is audited with before and after snapshots. Validator
designation here is what feeds the project step of validator resolution.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import NotFoundError, InvalidStateError
from timesheet_manager.db.repositories.project_repository import ProjectRepository
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.project import Project
from timesheet_manager.models.user import User, UserRole
from timesheet_manager.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    ProjectListResponse,
    ProjectDeleteResponse,
    ProjectValidatorsUpdate,
    ProjectSummary,
    SubProjectCreate,
    SubProjectResponse,
    UserProjectsResponse,
    ValidatorSummary,
)
from timesheet_manager.services.access_policy import AccessPolicy, require
from timesheet_manager.services.audit_service import AuditService, AuditContext, snapshot
from timesheet_manager.services.base_service import BaseService

logger = logging.getLogger(__name__)

VALIDATOR_ROLES = (UserRole.VALIDATOR, UserRole.ADMIN)


class ProjectService(BaseService):
    """Service for project operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.session = session
        self.project_repo = ProjectRepository(session)
        self.user_repo = UserRepository(session)
        self.audit = AuditService(session, context=audit_context)
        self.policy = AccessPolicy(session)

    def _to_response(self, project: Project, spent_minutes: int = 0) -> ProjectResponse:
        """Build response from a project loaded with get_with_details or list_projects."""
        return ProjectResponse(
            id=project.id,
            name=project.name,
            code=project.code,
            description=project.description,
            is_billable=project.is_billable,
            is_active=project.is_active,
            created_at=project.created_at,
            sub_projects=[
                SubProjectResponse.model_validate(sp)
                for sp in sorted(project.sub_projects, key=lambda sp: sp.name)
            ],
            validators=[
                ValidatorSummary.model_validate(v.user)
                for v in sorted(project.validators, key=lambda v: v.user.name)
            ],
            spent_hours=spent_minutes / 60,
        )

    async def _get_or_404(self, project_id: UUID) -> Project:
        project = await self.project_repo.get_with_details(project_id)
        if not project:
            raise NotFoundError("Project")
        return project

    async def list_projects(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_billable: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> ProjectListResponse:
        """Any authenticated user can browse projects to log time against."""
        projects = await self.project_repo.list_projects(
            search=search, is_active=is_active, is_billable=is_billable, skip=skip, limit=limit
        )
        total = await self.project_repo.count_projects(
            search=search, is_active=is_active, is_billable=is_billable
        )
        spent = await self.project_repo.spent_minutes(p.id for p in projects)
        return ProjectListResponse(
            items=[self._to_response(p, spent.get(p.id, 0)) for p in projects],
            total=total,
        )

    async def get_project(self, project_id: UUID) -> ProjectResponse:
        project = await self._get_or_404(project_id)
        spent = await self.project_repo.spent_minutes([project.id])
        return self._to_response(project, spent.get(project.id, 0))

    async def create_project(self, actor: User, data: ProjectCreate) -> ProjectResponse:
        require(self.policy.can_administer(actor))
        if await self.project_repo.get_by_code(data.code):
            raise InvalidStateError("A project with this code already exists", details={"code": data.code})

        project = await self.project_repo.create(**data.model_dump())
        await self.audit.log_crud(
            AuditAction.CREATE,
            "project",
            project.id,
            actor.id,
            new_values=snapshot(project),
        )
        await self.session.commit()
        logger.info("Project created", extra={"project_id": str(project.id), "code": project.code})
        return self._to_response(await self._get_or_404(project.id))

    async def update_project(self, actor: User, project_id: UUID, data: ProjectUpdate) -> ProjectResponse:
        """Change name, description, billing flag or active flag."""
        require(self.policy.can_administer(actor))
        project = await self._get_or_404(project_id)

        changes = data.model_dump(exclude_unset=True)
        for key in ("name", "is_billable", "is_active"):
            if key in changes and changes[key] is None:
                raise ValueError(f"{key} cannot be null")

        old_values = snapshot(project)
        await self.project_repo.update(project, **changes)
        await self.audit.log_crud(
            AuditAction.UPDATE,
            "project",
            project.id,
            actor.id,
            old_values=old_values,
            new_values=snapshot(project),
        )
        await self.session.commit()
        return await self.get_project(project.id)

    async def delete_project(self, actor: User, project_id: UUID) -> ProjectDeleteResponse:
        """
        Remove a project nobody has logged time on; otherwise deactivate it.

        Entries keep their project reference, so a used project is never
        hard-deleted.
        """
        require(self.policy.can_administer(actor))
        project = await self._get_or_404(project_id)
        old_values = snapshot(project)

        if await self.project_repo.count_entries(project.id) > 0:
            if project.is_active:
                await self.project_repo.update(project, is_active=False)
                await self.audit.log_crud(
                    AuditAction.DELETE,
                    "project",
                    project.id,
                    actor.id,
                    old_values=old_values,
                    new_values=snapshot(project),
                    details={"soft_delete": True, "code": project.code},
                )
                await self.session.commit()
                logger.info("Project deactivated", extra={"project_id": str(project.id)})
            return ProjectDeleteResponse(id=project.id, deleted=False, is_active=False)

        await self.project_repo.delete(project.id)
        await self.audit.log_crud(
            AuditAction.DELETE,
            "project",
            project_id,
            actor.id,
            old_values=old_values,
            details={"hard_delete": True, "code": old_values["code"]},
        )
        await self.session.commit()
        logger.info("Project deleted", extra={"project_id": str(project_id)})
        return ProjectDeleteResponse(id=project_id, deleted=True, is_active=False)

    async def create_sub_project(
        self,
        actor: User,
        project_id: UUID,
        data: SubProjectCreate,
    ) -> SubProjectResponse:
        require(self.policy.can_administer(actor))
        project = await self._get_or_404(project_id)
        if not project.is_active:
            raise InvalidStateError("Project is not active", details={"project_id": str(project_id)})

        sub_project = await self.project_repo.create_sub_project(project_id=project.id, **data.model_dump())
        await self.audit.log_crud(
            AuditAction.CREATE,
            "sub_project",
            sub_project.id,
            actor.id,
            new_values=snapshot(sub_project),
            details={"project_id": str(project.id), "project_code": project.code},
        )
        await self.session.commit()
        return SubProjectResponse.model_validate(sub_project)

    async def set_validators(
        self,
        actor: User,
        project_id: UUID,
        data: ProjectValidatorsUpdate,
    ) -> ProjectResponse:
        """
        Replace the validators of a project.

        Every designated account must exist, be active and hold the validator
        or administrator role.
        """
        require(self.policy.can_administer(actor))
        project = await self._get_or_404(project_id)

        user_ids = list(dict.fromkeys(data.user_ids))
        users = {u.id: u for u in await self.user_repo.get_many(user_ids)}
        missing = [str(uid) for uid in user_ids if uid not in users]
        if missing:
            raise NotFoundError("User", details={"user_ids": missing})
        ineligible = [
            str(u.id) for u in users.values() if not u.is_active or u.role not in VALIDATOR_ROLES
        ]
        if ineligible:
            raise InvalidStateError(
                "Validators must be active accounts with the validator or administrator role",
                details={"user_ids": ineligible},
            )

        previous = await self.project_repo.list_assigned_validator_ids(project.id)
        await self.project_repo.set_validators(project.id, user_ids)
        await self.audit.log_crud(
            AuditAction.UPDATE,
            "project_validators",
            project.id,
            actor.id,
            old_values={"validator_ids": sorted(str(uid) for uid in previous)},
            new_values={"validator_ids": sorted(str(uid) for uid in user_ids)},
            details={"project_code": project.code},
        )
        await self.session.commit()
        logger.info(
            "Project validators replaced",
            extra={"project_id": str(project.id), "validators": len(user_ids)},
        )
        return await self.get_project(project.id)

    async def list_user_projects(self, actor: User, user_id: UUID) -> UserProjectsResponse:
        """Projects a user validates. Visible to that user and to administrators."""
        require(self.policy.can_view_user(actor, user_id))
        if not await self.user_repo.get(user_id):
            raise NotFoundError("User")

        project_ids = await self.project_repo.list_validated_project_ids(user_id)
        projects: List[Project] = await self.project_repo.get_many(project_ids)
        return UserProjectsResponse(
            user_id=user_id,
            validating=[ProjectSummary.model_validate(p) for p in projects],
        )
