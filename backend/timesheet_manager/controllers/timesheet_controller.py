"""
Timesheet controller - coordinates timesheet and approval service calls.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.approval import ApprovalStatus
from timesheet_manager.models.timesheet import TimesheetStatus
from timesheet_manager.models.user import User
from timesheet_manager.schemas.approval import (
    ApprovalDecisionRequest,
    ApprovalResponse,
    ApprovalListResponse,
)
from timesheet_manager.schemas.timesheet import (
    TimesheetResponse,
    TimesheetListResponse,
    TimesheetIntegrityResponse,
)
from timesheet_manager.services.audit_service import AuditContext
from timesheet_manager.services.timesheet_service import TimesheetService
from timesheet_manager.services.timesheet_approval_service import TimesheetApprovalService


class TimesheetController(BaseController):
    """Controller for timesheet operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.timesheet_service = TimesheetService(session, audit_context=audit_context)
        self.approval_service = TimesheetApprovalService(session, audit_context=audit_context)

    async def get_or_create_timesheet(
        self,
        actor: User,
        week_of: Optional[date] = None,
        name: Optional[str] = None,
    ) -> TimesheetResponse:
        return await self.timesheet_service.get_or_create_timesheet(actor, week_of, name)

    async def get_timesheet(self, actor: User, timesheet_id: UUID) -> TimesheetResponse:
        return await self.timesheet_service.get_timesheet(actor, timesheet_id)

    async def list_timesheets(
        self,
        actor: User,
        status: Optional[TimesheetStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> TimesheetListResponse:
        return await self.timesheet_service.list_timesheets(actor, status, skip, limit)

    async def submit_timesheet(self, actor: User, timesheet_id: UUID) -> TimesheetResponse:
        return await self.timesheet_service.submit_timesheet(actor, timesheet_id)

    async def reopen_timesheet(
        self,
        actor: User,
        timesheet_id: UUID,
        comment: Optional[str] = None,
    ) -> TimesheetResponse:
        return await self.approval_service.reopen(actor, timesheet_id, comment)

    async def check_integrity(self, actor: User, timesheet_id: UUID) -> TimesheetIntegrityResponse:
        return await self.timesheet_service.check_integrity(actor, timesheet_id)

    async def decide(self, actor: User, data: ApprovalDecisionRequest) -> ApprovalResponse:
        return await self.approval_service.decide(actor, data)

    async def list_approvals(
        self,
        actor: User,
        status: Optional[ApprovalStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> ApprovalListResponse:
        return await self.approval_service.list_approvals(actor, status, skip, limit)
