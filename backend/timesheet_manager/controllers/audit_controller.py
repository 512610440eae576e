"""
Audit controller - read and verify the append-only audit log.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.user import User
from timesheet_manager.schemas.audit import (
    AuditLogResponse,
    AuditLogListResponse,
    AuditVerificationResponse,
)
from timesheet_manager.services.access_policy import AccessPolicy, require
from timesheet_manager.services.audit_service import AuditService


class AuditController(BaseController):
    """Controller for audit log queries. Administrators only."""

    def __init__(self, session: AsyncSession):
        self.audit_service = AuditService(session)
        self.policy = AccessPolicy(session)

    async def list_audit_logs(
        self,
        actor: User,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditLogListResponse:
        require(self.policy.can_administer(actor))
        return await self.audit_service.list_audit_logs(
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            action=action,
            page=page,
            limit=limit,
        )

    async def get_audit_log(self, actor: User, record_id: UUID) -> AuditLogResponse:
        require(self.policy.can_administer(actor))
        return await self.audit_service.get_audit_log(record_id)

    async def verify_audit_log(self, actor: User, record_id: UUID) -> AuditVerificationResponse:
        require(self.policy.can_administer(actor))
        return await self.audit_service.verify_by_id(record_id)
