"""
Project repository for database operations, including sub-projects and validators.
"""

from typing import Dict, Optional, List, Iterable
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_
from sqlalchemy.orm import selectinload

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.project import Project, SubProject, ProjectValidator
from timesheet_manager.models.timesheet import TimeEntry
from timesheet_manager.models.user import User


class ProjectRepository(BaseRepository[Project]):
    """Repository for project operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Project, session)

    def _with_details(self, query):
        return query.options(
            selectinload(Project.sub_projects),
            selectinload(Project.validators).selectinload(ProjectValidator.user),
        )

    async def get_with_details(self, project_id: UUID) -> Optional[Project]:
        """Project with sub-projects and validator accounts, refreshed from the store."""
        result = await self.session.execute(
            self._with_details(select(Project).where(Project.id == project_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[Project]:
        result = await self.session.execute(select(Project).where(Project.code == code))
        return result.scalar_one_or_none()

    async def get_many(self, ids: Iterable[UUID]) -> List[Project]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Project).where(Project.id.in_(ids)).order_by(Project.name)
        )
        return list(result.scalars().all())

    async def list_projects(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_billable: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Project]:
        """List projects by name, matching ``search`` against name or code."""
        query = self._with_details(self._filtered(search, is_active, is_billable))
        result = await self.session.execute(
            query.order_by(Project.name).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count_projects(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_billable: Optional[bool] = None,
    ) -> int:
        subquery = self._filtered(search, is_active, is_billable).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())

    def _filtered(self, search, is_active, is_billable):
        query = select(Project)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(func.lower(Project.name).like(pattern), func.lower(Project.code).like(pattern))
            )
        if is_active is not None:
            query = query.where(Project.is_active.is_(is_active))
        if is_billable is not None:
            query = query.where(Project.is_billable.is_(is_billable))
        return query

    async def spent_minutes(self, project_ids: Iterable[UUID]) -> Dict[UUID, int]:
        """Minutes logged per project, across every user and week."""
        project_ids = list(project_ids)
        if not project_ids:
            return {}
        result = await self.session.execute(
            select(TimeEntry.project_id, func.coalesce(func.sum(TimeEntry.duration), 0))
            .where(TimeEntry.project_id.in_(project_ids))
            .group_by(TimeEntry.project_id)
        )
        return {project_id: int(minutes) for project_id, minutes in result.all()}

    async def count_entries(self, project_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(TimeEntry.id)).where(TimeEntry.project_id == project_id)
        )
        return int(result.scalar_one())

    async def get_sub_project(self, sub_project_id: UUID) -> Optional[SubProject]:
        """Get sub-project by ID."""
        result = await self.session.execute(
            select(SubProject).where(SubProject.id == sub_project_id)
        )
        return result.scalar_one_or_none()

    async def create_sub_project(self, **kwargs) -> SubProject:
        sub_project = SubProject(**kwargs)
        self.session.add(sub_project)
        await self.session.flush()
        await self.session.refresh(sub_project)
        return sub_project

    async def list_validator_ids(self, project_ids: Iterable[UUID]) -> List[UUID]:
        """Active users registered as validators on any of the given projects."""
        project_ids = list(project_ids)
        if not project_ids:
            return []
        result = await self.session.execute(
            select(ProjectValidator.user_id)
            .join(User, User.id == ProjectValidator.user_id)
            .where(
                ProjectValidator.project_id.in_(project_ids),
                User.is_active.is_(True),
            )
            .distinct()
        )
        return list(result.scalars().all())

    async def list_assigned_validator_ids(self, project_id: UUID) -> List[UUID]:
        """Every validator row of a project, active or not."""
        result = await self.session.execute(
            select(ProjectValidator.user_id).where(ProjectValidator.project_id == project_id)
        )
        return list(result.scalars().all())

    async def list_validated_project_ids(self, user_id: UUID) -> List[UUID]:
        """Projects on which the user is a validator."""
        result = await self.session.execute(
            select(ProjectValidator.project_id).where(ProjectValidator.user_id == user_id)
        )
        return list(result.scalars().all())

    async def set_validators(self, project_id: UUID, user_ids: List[UUID]) -> List[ProjectValidator]:
        """Replace validators for a project."""
        await self.session.execute(
            delete(ProjectValidator).where(ProjectValidator.project_id == project_id)
        )
        validators = []
        for user_id in dict.fromkeys(user_ids):
            validator = ProjectValidator(project_id=project_id, user_id=user_id)
            self.session.add(validator)
            validators.append(validator)
        await self.session.flush()
        return validators
