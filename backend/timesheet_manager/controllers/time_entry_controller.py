"""
Time entry controller.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.user import User
from timesheet_manager.schemas.timesheet import (
    TimeEntryCreate,
    TimeEntryUpdate,
    TimeEntryResponse,
    TimeEntryListResponse,
)
from timesheet_manager.services.audit_service import AuditContext
from timesheet_manager.services.time_entry_service import TimeEntryService


class TimeEntryController(BaseController):
    """Controller for time entry operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.time_entry_service = TimeEntryService(session, audit_context=audit_context)

    async def create_entry(self, actor: User, data: TimeEntryCreate) -> TimeEntryResponse:
        return await self.time_entry_service.create_entry(actor, data)

    async def update_entry(self, actor: User, entry_id: UUID, data: TimeEntryUpdate) -> TimeEntryResponse:
        return await self.time_entry_service.update_entry(actor, entry_id, data)

    async def delete_entry(self, actor: User, entry_id: UUID) -> None:
        await self.time_entry_service.delete_entry(actor, entry_id)

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
        return await self.time_entry_service.list_entries(
            actor,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            project_id=project_id,
            page=page,
            limit=limit,
        )
