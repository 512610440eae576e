"""
Timesheet service - weekly sheets, submission and integrity checks.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.config import settings
from timesheet_manager.core.exceptions import (
    NotFoundError,
    InvalidStateError,
    EmptySubmissionError,
)
from timesheet_manager.db.base import utcnow
from timesheet_manager.db.repositories.approval_repository import ApprovalRepository
from timesheet_manager.db.repositories.time_entry_repository import TimeEntryRepository
from timesheet_manager.db.repositories.timesheet_repository import TimesheetRepository
from timesheet_manager.models.approval import ApprovalStatus
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.notification import NotificationType
from timesheet_manager.models.timesheet import Timesheet, TimesheetStatus
from timesheet_manager.models.user import User
from timesheet_manager.schemas.timesheet import (
    TimesheetResponse,
    TimesheetListResponse,
    TimeEntryResponse,
    TimesheetIntegrityResponse,
    DecisionIntegrity,
)
from timesheet_manager.services.access_policy import AccessPolicy, require
from timesheet_manager.services.audit_service import AuditService, AuditContext, snapshot
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.services.notification_service import (
    NotificationEmitter,
    DatabaseNotificationEmitter,
)
from timesheet_manager.services.signature_service import (
    SignatureService,
    submission_fields,
    decision_fields,
)
from timesheet_manager.services.validator_resolver import ValidatorResolver

logger = logging.getLogger(__name__)


def week_bounds(day: date) -> Tuple[date, date]:
    """First and last day of the week containing ``day``."""
    start = day - timedelta(days=(day.weekday() - settings.WEEK_STARTS_ON) % 7)
    return start, start + timedelta(days=6)


class TimesheetService(BaseService):
    """Service for timesheet operations."""

    def __init__(
        self,
        session: AsyncSession,
        audit_context: Optional[AuditContext] = None,
        notifier: Optional[NotificationEmitter] = None,
        signer: Optional[SignatureService] = None,
    ):
        self.session = session
        self.timesheet_repo = TimesheetRepository(session)
        self.entry_repo = TimeEntryRepository(session)
        self.approval_repo = ApprovalRepository(session)
        self.signer = signer or SignatureService.from_settings()
        self.audit = AuditService(session, signer=self.signer, context=audit_context)
        self.notifier = notifier or DatabaseNotificationEmitter(session)
        self.resolver = ValidatorResolver(session)
        self.policy = AccessPolicy(session, resolver=self.resolver)

    async def _to_response(
        self,
        timesheet: Timesheet,
        include_entries: bool = False,
    ) -> TimesheetResponse:
        """Build response. Entries are queried explicitly, never lazy-loaded."""
        entries: Optional[List[TimeEntryResponse]] = None
        if include_entries:
            rows = await self.entry_repo.list_by_timesheet(timesheet.id)
            entries = [TimeEntryResponse.model_validate(e) for e in rows]
        return TimesheetResponse(
            id=timesheet.id,
            user_id=timesheet.user_id,
            name=timesheet.name,
            week_start=timesheet.week_start,
            week_end=timesheet.week_end,
            status=timesheet.status,
            total_minutes=timesheet.total_minutes,
            total_hours=timesheet.total_hours,
            submitted_at=timesheet.submitted_at,
            locked_at=timesheet.locked_at,
            locked_by_id=timesheet.locked_by_id,
            integrity_hash=timesheet.integrity_hash,
            created_at=timesheet.created_at,
            updated_at=timesheet.updated_at,
            entries=entries,
        )

    async def get_or_create_for_week(
        self,
        owner_id: UUID,
        day: date,
        actor_id: UUID,
        name: Optional[str] = None,
        lock: bool = False,
    ) -> Timesheet:
        """The owner's sheet for the week containing ``day``, created as DRAFT if missing."""
        week_start, week_end = week_bounds(day)
        timesheet = await self.timesheet_repo.get_by_user_and_week(
            owner_id, week_start, for_update=lock
        )
        if timesheet:
            return timesheet

        try:
            async with self.session.begin_nested():
                timesheet = await self.timesheet_repo.create(
                    user_id=owner_id,
                    name=name,
                    week_start=week_start,
                    week_end=week_end,
                    status=TimesheetStatus.DRAFT,
                    total_minutes=0,
                )
        except IntegrityError:
            # A concurrent request created the same week first: use its sheet
            timesheet = await self.timesheet_repo.get_by_user_and_week(
                owner_id, week_start, for_update=lock
            )
            if timesheet is None:
                raise
            return timesheet

        logger.info(
            "Timesheet created",
            extra={"timesheet_id": str(timesheet.id), "week_start": week_start.isoformat()},
        )
        await self.audit.log_crud(
            AuditAction.CREATE,
            "timesheet",
            timesheet.id,
            actor_id,
            new_values=snapshot(timesheet),
        )
        return timesheet

    async def recompute_total(self, timesheet: Timesheet) -> int:
        """Set total_minutes to the exact sum of the sheet's current entries."""
        _, total = await self.timesheet_repo.entry_stats(timesheet.id)
        if timesheet.total_minutes != total:
            await self.timesheet_repo.update(timesheet, total_minutes=total)
        return total

    async def get_or_create_timesheet(
        self,
        actor: User,
        week_of: Optional[date] = None,
        name: Optional[str] = None,
    ) -> TimesheetResponse:
        """Get or create the acting user's timesheet for a week (defaults to this week)."""
        timesheet = await self.get_or_create_for_week(
            actor.id, week_of or utcnow().date(), actor.id, name=name
        )
        await self.session.commit()
        return await self._to_response(timesheet, include_entries=True)

    async def get_timesheet(self, actor: User, timesheet_id: UUID) -> TimesheetResponse:
        timesheet = await self.timesheet_repo.get(timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet")
        require(await self.policy.can_view(actor, timesheet))
        return await self._to_response(timesheet, include_entries=True)

    async def list_timesheets(
        self,
        actor: User,
        status: Optional[TimesheetStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> TimesheetListResponse:
        """List the acting user's own timesheets."""
        timesheets = await self.timesheet_repo.list_by_user(
            actor.id, status=status, skip=skip, limit=limit
        )
        items = [await self._to_response(t) for t in timesheets]
        total = await self.timesheet_repo.count_by_user(actor.id, status=status)
        return TimesheetListResponse(items=items, total=total)

    async def submit_timesheet(self, actor: User, timesheet_id: UUID) -> TimesheetResponse:
        """
        Submit an open timesheet for validation.

        Signs the submission, then creates or resets one PENDING approval per
        resolved validator and notifies each of them.
        """
        timesheet = await self.timesheet_repo.get_for_update(timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet")
        require(self.policy.can_submit(actor, timesheet))
        if not timesheet.is_open:
            raise InvalidStateError(
                f"Cannot submit a timesheet in status {timesheet.status.value}",
                details={"status": timesheet.status.value},
            )

        entry_count, total_minutes = await self.timesheet_repo.entry_stats(timesheet.id)
        if entry_count == 0:
            raise EmptySubmissionError()

        validator_ids = await self.resolver.resolve(timesheet)
        if not validator_ids:
            raise InvalidStateError("No active validator is available for this timesheet")

        submitted_at = utcnow()
        integrity_hash = self.signer.sign(
            submission_fields(actor.id, timesheet.id, total_minutes, entry_count, submitted_at)
        )
        previous_status = timesheet.status
        await self.timesheet_repo.update(
            timesheet,
            status=TimesheetStatus.SUBMITTED,
            total_minutes=total_minutes,
            submitted_at=submitted_at,
            integrity_hash=integrity_hash,
            locked_at=None,
            locked_by_id=None,
        )

        for validator_id in validator_ids:
            approval = await self.approval_repo.get_by_timesheet_and_validator(
                timesheet.id, validator_id
            )
            if approval:
                await self.approval_repo.update(
                    approval,
                    status=ApprovalStatus.PENDING,
                    comment=None,
                    decided_at=None,
                    signature=None,
                )
            else:
                await self.approval_repo.create(
                    timesheet_id=timesheet.id,
                    validator_id=validator_id,
                    status=ApprovalStatus.PENDING,
                )
            await self.notifier.emit(
                validator_id,
                NotificationType.TIMESHEET_SUBMITTED,
                "Timesheet awaiting validation",
                f"{actor.name} submitted the timesheet for the week of "
                f"{timesheet.week_start.isoformat()} ({timesheet.total_hours:g} h).",
                payload={"timesheet_id": str(timesheet.id), "owner_id": str(actor.id)},
            )

        await self.audit.log_workflow(
            AuditAction.SUBMIT,
            timesheet.id,
            actor.id,
            details={
                "previous_status": previous_status,
                "total_minutes": total_minutes,
                "entry_count": entry_count,
                "integrity_hash": integrity_hash,
                "validators": validator_ids,
            },
        )
        await self.session.commit()
        logger.info(
            "Timesheet submitted",
            extra={"timesheet_id": str(timesheet.id), "validator_count": len(validator_ids)},
        )
        return await self._to_response(timesheet)

    async def check_integrity(self, actor: User, timesheet_id: UUID) -> TimesheetIntegrityResponse:
        """
        Recompute the submission hash and every decision signature.

        The submission hash is only meaningful while the sheet is locked;
        open sheets report None.
        """
        timesheet = await self.timesheet_repo.get(timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet")
        require(await self.policy.can_view(actor, timesheet))

        submission_valid = None
        if not timesheet.is_open and timesheet.integrity_hash and timesheet.submitted_at:
            entry_count, total_minutes = await self.timesheet_repo.entry_stats(timesheet.id)
            submission_valid = self.signer.verify(
                submission_fields(
                    timesheet.user_id,
                    timesheet.id,
                    total_minutes,
                    entry_count,
                    timesheet.submitted_at,
                ),
                timesheet.integrity_hash,
            )

        decisions = []
        for approval in await self.approval_repo.list_by_timesheet(timesheet.id):
            if approval.signature is None or approval.decided_at is None:
                continue
            decisions.append(
                DecisionIntegrity(
                    approval_id=approval.id,
                    validator_id=approval.validator_id,
                    status=approval.status.value,
                    valid=self.signer.verify(
                        decision_fields(
                            timesheet.id,
                            approval.validator_id,
                            approval.status,
                            approval.decided_at,
                        ),
                        approval.signature,
                    ),
                )
            )

        if submission_valid is False or any(not d.valid for d in decisions):
            logger.warning("Timesheet failed integrity check", extra={"timesheet_id": str(timesheet.id)})

        return TimesheetIntegrityResponse(
            timesheet_id=timesheet.id,
            submission_valid=submission_valid,
            decisions=decisions,
        )
