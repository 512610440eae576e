"""
Approval repository for database operations.
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.orm import selectinload

from timesheet_manager.db.repositories.base_repository import BaseRepository
from timesheet_manager.models.approval import Approval, ApprovalStatus
from timesheet_manager.models.timesheet import Timesheet


class ApprovalRepository(BaseRepository[Approval]):
    """Repository for approval operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Approval, session)

    async def get_by_timesheet_and_validator(
        self,
        timesheet_id: UUID,
        validator_id: UUID,
    ) -> Optional[Approval]:
        """Get the (unique) approval row for a validator on a timesheet."""
        result = await self.session.execute(
            select(Approval).where(
                Approval.timesheet_id == timesheet_id,
                Approval.validator_id == validator_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_pending(self, timesheet_id: UUID, validator_id: UUID) -> Optional[Approval]:
        """Get the validator's approval row only if it is still pending."""
        result = await self.session.execute(
            select(Approval).where(
                Approval.timesheet_id == timesheet_id,
                Approval.validator_id == validator_id,
                Approval.status == ApprovalStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_timesheet(self, timesheet_id: UUID) -> List[Approval]:
        """List every approval row for a timesheet."""
        result = await self.session.execute(
            select(Approval)
            .where(Approval.timesheet_id == timesheet_id)
            .order_by(Approval.created_at)
        )
        return list(result.scalars().all())

    async def list_for_validator(
        self,
        validator_id: Optional[UUID],
        status: Optional[ApprovalStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Approval]:
        """List approvals addressed to a validator; None lists every validator's."""
        query = self._filtered(validator_id, status).options(
            selectinload(Approval.timesheet).selectinload(Timesheet.user),
            selectinload(Approval.validator),
        )
        result = await self.session.execute(
            query.order_by(Approval.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count_for_validator(
        self,
        validator_id: Optional[UUID],
        status: Optional[ApprovalStatus] = None,
    ) -> int:
        """Count approvals matching the same filters as list_for_validator."""
        subquery = self._filtered(validator_id, status).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())

    def _filtered(self, validator_id, status):
        query = select(Approval)
        if validator_id is not None:
            query = query.where(Approval.validator_id == validator_id)
        if status is not None:
            query = query.where(Approval.status == status)
        return query

    async def reject_pending(self, timesheet_id: UUID, comment: str, decided_at: datetime) -> int:
        """Bulk-transition every still-pending approval of a timesheet to REJECTED."""
        result = await self.session.execute(
            update(Approval)
            .where(
                Approval.timesheet_id == timesheet_id,
                Approval.status == ApprovalStatus.PENDING,
            )
            .values(
                status=ApprovalStatus.REJECTED,
                comment=comment,
                decided_at=decided_at,
                updated_at=decided_at,
            )
        )
        await self.session.flush()
        return result.rowcount
