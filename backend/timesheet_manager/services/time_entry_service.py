"""
Time entry service - entries can change only while their timesheet is open.

Every entry is filed in its owner's sheet for the entry's week. After each
mutation the affected sheet totals are recomputed from the stored entries.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import NotFoundError, ForbiddenError, LockedError
from timesheet_manager.db.repositories.project_repository import ProjectRepository
from timesheet_manager.db.repositories.time_entry_repository import TimeEntryRepository
from timesheet_manager.db.repositories.timesheet_repository import TimesheetRepository
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.project import Project
from timesheet_manager.models.timesheet import Timesheet, TimeEntry
from timesheet_manager.models.user import User
from timesheet_manager.schemas.timesheet import (
    TimeEntryCreate,
    TimeEntryUpdate,
    TimeEntryResponse,
    TimeEntryListResponse,
)
from timesheet_manager.services.access_policy import AccessPolicy, require
from timesheet_manager.services.audit_service import AuditContext, snapshot
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.services.timesheet_service import TimesheetService

logger = logging.getLogger(__name__)


def _ensure_open(timesheet: Optional[Timesheet]) -> None:
    if timesheet is not None and not timesheet.is_open:
        raise LockedError(
            f"Timesheet for the week of {timesheet.week_start.isoformat()} is {timesheet.status.value}",
            details={"timesheet_id": str(timesheet.id), "status": timesheet.status.value},
        )


class TimeEntryService(BaseService):
    """Service for time entry operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.session = session
        self.entry_repo = TimeEntryRepository(session)
        self.timesheet_repo = TimesheetRepository(session)
        self.project_repo = ProjectRepository(session)
        self.user_repo = UserRepository(session)
        self.timesheet_service = TimesheetService(session, audit_context=audit_context)
        self.audit = self.timesheet_service.audit
        self.policy = AccessPolicy(session)

    async def _get_project(self, project_id: UUID, sub_project_id: Optional[UUID]) -> Project:
        project = await self.project_repo.get(project_id)
        if not project:
            raise NotFoundError("Project")
        if not project.is_active:
            raise ValueError("Project is not active")
        if sub_project_id is not None:
            sub_project = await self.project_repo.get_sub_project(sub_project_id)
            if not sub_project:
                raise NotFoundError("Sub-project")
            if sub_project.project_id != project.id:
                raise ValueError("Sub-project does not belong to the project")
        return project

    async def _open_sheet_for(self, owner_id: UUID, day: date, actor_id: UUID) -> Timesheet:
        """Locked, open sheet for the owner's week containing ``day``."""
        timesheet = await self.timesheet_service.get_or_create_for_week(
            owner_id, day, actor_id, lock=True
        )
        _ensure_open(timesheet)
        return timesheet

    async def _current_sheet(self, entry: TimeEntry) -> Optional[Timesheet]:
        if entry.timesheet_id is None:
            return None
        return await self.timesheet_repo.get_for_update(entry.timesheet_id)

    async def create_entry(self, actor: User, data: TimeEntryCreate) -> TimeEntryResponse:
        owner_id = data.user_id or actor.id
        require(self.policy.can_mutate_entry(actor, owner_id))
        if owner_id != actor.id:
            owner = await self.user_repo.get(owner_id)
            if not owner or not owner.is_active:
                raise NotFoundError("User")

        project = await self._get_project(data.project_id, data.sub_project_id)
        timesheet = await self._open_sheet_for(owner_id, data.date, actor.id)

        entry = await self.entry_repo.create(
            user_id=owner_id,
            project_id=project.id,
            sub_project_id=data.sub_project_id,
            timesheet_id=timesheet.id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            duration=data.duration,
            description=data.description,
            is_billable=project.is_billable if data.is_billable is None else data.is_billable,
        )
        await self.timesheet_service.recompute_total(timesheet)

        await self.audit.log_crud(
            AuditAction.CREATE,
            "time_entry",
            entry.id,
            actor.id,
            new_values=snapshot(entry),
            details={"timesheet_id": timesheet.id},
        )
        await self.session.commit()
        return TimeEntryResponse.model_validate(entry)

    async def update_entry(
        self,
        actor: User,
        entry_id: UUID,
        data: TimeEntryUpdate,
    ) -> TimeEntryResponse:
        entry = await self.entry_repo.get(entry_id)
        if not entry:
            raise NotFoundError("Time entry")
        require(self.policy.can_mutate_entry(actor, entry.user_id))

        current_sheet = await self._current_sheet(entry)
        _ensure_open(current_sheet)

        changes = data.model_dump(exclude_unset=True)
        for key in ("date", "duration", "project_id", "is_billable"):
            if key in changes and changes[key] is None:
                raise ValueError(f"{key} cannot be null")

        if "project_id" in changes or "sub_project_id" in changes:
            project_id = changes.get("project_id", entry.project_id)
            sub_project_id = changes.get("sub_project_id", entry.sub_project_id)
            if "project_id" in changes and "sub_project_id" not in changes:
                # A sub-project never outlives a project change
                sub_project_id = None
                changes["sub_project_id"] = None
            await self._get_project(project_id, sub_project_id)

        start_time = changes.get("start_time", entry.start_time)
        end_time = changes.get("end_time", entry.end_time)
        if start_time and end_time and end_time <= start_time:
            raise ValueError("end_time must be after start_time")

        target_sheet = current_sheet
        new_date = changes.get("date", entry.date)
        if current_sheet is None or not (current_sheet.week_start <= new_date <= current_sheet.week_end):
            target_sheet = await self._open_sheet_for(entry.user_id, new_date, actor.id)
            changes["timesheet_id"] = target_sheet.id

        old_values = snapshot(entry)
        await self.entry_repo.update(entry, **changes)

        if current_sheet is not None and current_sheet is not target_sheet:
            await self.timesheet_service.recompute_total(current_sheet)
        await self.timesheet_service.recompute_total(target_sheet)

        await self.audit.log_crud(
            AuditAction.UPDATE,
            "time_entry",
            entry.id,
            actor.id,
            old_values=old_values,
            new_values=snapshot(entry),
        )
        await self.session.commit()
        return TimeEntryResponse.model_validate(entry)

    async def delete_entry(self, actor: User, entry_id: UUID) -> None:
        entry = await self.entry_repo.get(entry_id)
        if not entry:
            raise NotFoundError("Time entry")
        require(self.policy.can_mutate_entry(actor, entry.user_id))

        timesheet = await self._current_sheet(entry)
        _ensure_open(timesheet)

        old_values = snapshot(entry)
        await self.entry_repo.delete(entry.id)
        if timesheet is not None:
            await self.timesheet_service.recompute_total(timesheet)

        await self.audit.log_crud(
            AuditAction.DELETE,
            "time_entry",
            entry_id,
            actor.id,
            old_values=old_values,
        )
        await self.session.commit()

    async def list_entries(
        self,
        actor: User,
        user_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        project_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 50,
    ) -> TimeEntryListResponse:
        """List entries of the acting user; administrators may pass another user_id."""
        owner_id = user_id or actor.id
        if owner_id != actor.id and not actor.is_admin:
            raise ForbiddenError("Only administrators can list another user's entries")

        skip = (page - 1) * limit
        entries = await self.entry_repo.list_for_user(
            owner_id,
            start_date=start_date,
            end_date=end_date,
            project_id=project_id,
            skip=skip,
            limit=limit,
        )
        total = await self.entry_repo.count_for_user(
            owner_id, start_date=start_date, end_date=end_date, project_id=project_id
        )
        return TimeEntryListResponse(
            items=[TimeEntryResponse.model_validate(e) for e in entries],
            total=total,
            page=page,
            limit=limit,
        )
