"""
Timesheet approval service - decide, reopen, validation queue.

The first decision on a submitted sheet is authoritative: it sets the sheet
status and locks it. Approvals of other validators stay PENDING until the
sheet is reopened, at which point they are closed as REJECTED.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import (
    NotFoundError,
    InvalidStateError,
    AlreadyDecidedError,
    MissingRejectionReasonError,
)
from timesheet_manager.db.base import utcnow
from timesheet_manager.db.repositories.approval_repository import ApprovalRepository
from timesheet_manager.db.repositories.timesheet_repository import TimesheetRepository
from timesheet_manager.models.approval import Approval, ApprovalStatus
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.notification import NotificationType
from timesheet_manager.models.timesheet import Timesheet, TimesheetStatus, DECIDED_STATUSES
from timesheet_manager.models.user import User
from timesheet_manager.schemas.approval import (
    ApprovalDecisionRequest,
    ApprovalResponse,
    ApprovalSummary,
    ApprovalListResponse,
)
from timesheet_manager.schemas.timesheet import TimesheetResponse
from timesheet_manager.services.access_policy import require
from timesheet_manager.services.audit_service import AuditContext
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.services.notification_service import NotificationEmitter
from timesheet_manager.services.signature_service import SignatureService, decision_fields
from timesheet_manager.services.timesheet_service import TimesheetService

logger = logging.getLogger(__name__)

REOPEN_COMMENT = "Timesheet reopened"

_DECISION_ACTIONS = {
    ApprovalStatus.APPROVED: (AuditAction.APPROVE, TimesheetStatus.APPROVED, NotificationType.TIMESHEET_APPROVED),
    ApprovalStatus.REJECTED: (AuditAction.REJECT, TimesheetStatus.REJECTED, NotificationType.TIMESHEET_REJECTED),
}


class TimesheetApprovalService(BaseService):
    """Service for timesheet approval operations."""

    def __init__(
        self,
        session: AsyncSession,
        audit_context: Optional[AuditContext] = None,
        notifier: Optional[NotificationEmitter] = None,
        signer: Optional[SignatureService] = None,
    ):
        self.session = session
        self.timesheet_repo = TimesheetRepository(session)
        self.approval_repo = ApprovalRepository(session)
        self.timesheet_service = TimesheetService(
            session, audit_context=audit_context, notifier=notifier, signer=signer
        )
        self.signer = self.timesheet_service.signer
        self.audit = self.timesheet_service.audit
        self.notifier = self.timesheet_service.notifier
        self.policy = self.timesheet_service.policy

    async def _pending_approval_for(self, actor: User, timesheet: Timesheet) -> Approval:
        """The actor's PENDING approval; administrators get one on demand."""
        approval = await self.approval_repo.get_pending(timesheet.id, actor.id)
        if approval:
            return approval

        # Only reachable by administrators once the policy gate has passed.
        existing = await self.approval_repo.get_by_timesheet_and_validator(timesheet.id, actor.id)
        if existing:
            return await self.approval_repo.update(
                existing,
                status=ApprovalStatus.PENDING,
                comment=None,
                decided_at=None,
                signature=None,
            )
        return await self.approval_repo.create(
            timesheet_id=timesheet.id,
            validator_id=actor.id,
            status=ApprovalStatus.PENDING,
        )

    async def decide(self, actor: User, data: ApprovalDecisionRequest) -> ApprovalResponse:
        """Approve or reject a submitted timesheet on behalf of the acting validator."""
        timesheet = await self.timesheet_repo.get_for_update(data.timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet")

        require(await self.policy.can_decide(actor, timesheet), error=AlreadyDecidedError)
        if timesheet.status != TimesheetStatus.SUBMITTED:
            raise AlreadyDecidedError(
                f"Timesheet is {timesheet.status.value}, not awaiting a decision",
                details={"status": timesheet.status.value},
            )

        decision = ApprovalStatus(data.status)
        comment = (data.comment or "").strip() or None
        if decision == ApprovalStatus.REJECTED and not comment:
            raise MissingRejectionReasonError()

        approval = await self._pending_approval_for(actor, timesheet)
        audit_action, sheet_status, notification_type = _DECISION_ACTIONS[decision]

        decided_at = utcnow()
        signature = self.signer.sign(
            decision_fields(timesheet.id, actor.id, decision, decided_at)
        )
        await self.approval_repo.update(
            approval,
            status=decision,
            comment=comment,
            decided_at=decided_at,
            signature=signature,
        )
        await self.timesheet_repo.update(
            timesheet,
            status=sheet_status,
            locked_at=decided_at,
            locked_by_id=actor.id,
        )

        verb = "approved" if decision == ApprovalStatus.APPROVED else "rejected"
        message = f"{actor.name} {verb} your timesheet for the week of {timesheet.week_start.isoformat()}."
        if comment:
            message = f"{message} Comment: {comment}"
        await self.notifier.emit(
            timesheet.user_id,
            notification_type,
            f"Timesheet {verb}",
            message,
            payload={"timesheet_id": str(timesheet.id), "approval_id": str(approval.id)},
        )

        await self.audit.log_workflow(
            audit_action,
            timesheet.id,
            actor.id,
            details={
                "approval_id": approval.id,
                "comment": comment,
                "signature": signature,
            },
        )
        await self.session.commit()
        logger.info(
            f"Timesheet {verb}",
            extra={"timesheet_id": str(timesheet.id), "validator_id": str(actor.id)},
        )
        return ApprovalResponse.model_validate(approval)

    async def reopen(
        self,
        actor: User,
        timesheet_id: UUID,
        comment: Optional[str] = None,
    ) -> TimesheetResponse:
        """Return a decided timesheet to an editable state."""
        timesheet = await self.timesheet_repo.get_for_update(timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet")

        require(await self.policy.can_reopen(actor, timesheet))
        if timesheet.status not in DECIDED_STATUSES:
            raise InvalidStateError(
                f"Cannot reopen a timesheet in status {timesheet.status.value}",
                details={"status": timesheet.status.value},
            )

        previous_status = timesheet.status
        now = utcnow()
        await self.timesheet_repo.update(
            timesheet,
            status=TimesheetStatus.REOPENED,
            locked_at=None,
            locked_by_id=None,
        )
        closed = await self.approval_repo.reject_pending(timesheet.id, REOPEN_COMMENT, now)

        comment = (comment or "").strip() or None
        message = f"{actor.name} reopened your timesheet for the week of {timesheet.week_start.isoformat()}."
        if comment:
            message = f"{message} Comment: {comment}"
        await self.notifier.emit(
            timesheet.user_id,
            NotificationType.TIMESHEET_REOPENED,
            "Timesheet reopened",
            message,
            payload={"timesheet_id": str(timesheet.id)},
        )

        await self.audit.log_workflow(
            AuditAction.REOPEN,
            timesheet.id,
            actor.id,
            details={
                "previous_status": previous_status,
                "comment": comment,
                "closed_pending_approvals": closed,
            },
        )
        await self.session.commit()
        logger.info("Timesheet reopened", extra={"timesheet_id": str(timesheet.id)})
        return await self.timesheet_service._to_response(timesheet)

    async def list_approvals(
        self,
        actor: User,
        status: Optional[ApprovalStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> ApprovalListResponse:
        """Validation queue of the acting user; administrators see every approval."""
        validator_id = None if actor.is_admin else actor.id
        approvals = await self.approval_repo.list_for_validator(
            validator_id, status=status, skip=skip, limit=limit
        )
        items = []
        for approval in approvals:
            timesheet = approval.timesheet
            items.append(
                ApprovalSummary(
                    id=approval.id,
                    timesheet_id=approval.timesheet_id,
                    validator_id=approval.validator_id,
                    status=approval.status,
                    comment=approval.comment,
                    decided_at=approval.decided_at,
                    signature=approval.signature,
                    created_at=approval.created_at,
                    validator_name=approval.validator.name if approval.validator else None,
                    owner_id=timesheet.user_id,
                    owner_name=timesheet.user.name,
                    week_start=timesheet.week_start,
                    timesheet_status=timesheet.status.value,
                    total_hours=timesheet.total_hours,
                )
            )
        total = await self.approval_repo.count_for_validator(validator_id, status=status)
        return ApprovalListResponse(items=items, total=total)
