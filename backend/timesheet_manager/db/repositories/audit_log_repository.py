"""
Audit log repository. Append and read only.
"""

from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.audit_log import AuditLog, AuditAction


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for audit log operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(AuditLog, session)

    async def update(self, instance, **kwargs):
        raise NotImplementedError("Audit records are append-only")

    async def delete(self, id: UUID) -> bool:
        raise NotImplementedError("Audit records are append-only")

    def _filtered(
        self,
        resource_type: Optional[str],
        resource_id: Optional[str],
        user_id: Optional[UUID],
        action: Optional[AuditAction],
    ):
        query = select(AuditLog)
        if resource_type is not None:
            query = query.where(AuditLog.resource_type == resource_type)
        if resource_id is not None:
            query = query.where(AuditLog.resource_id == resource_id)
        if user_id is not None:
            query = query.where(AuditLog.user_id == user_id)
        if action is not None:
            query = query.where(AuditLog.action == action)
        return query

    async def search(
        self,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AuditLog]:
        """List audit records, newest first."""
        query = self._filtered(resource_type, resource_id, user_id, action)
        result = await self.session.execute(
            query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count(
        self,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
    ) -> int:
        subquery = self._filtered(resource_type, resource_id, user_id, action).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())
