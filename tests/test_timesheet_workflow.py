"""
Timesheet lifecycle tests: submit, decide, reopen and integrity checks.
"""

import json

import pytest
from sqlalchemy import select, update
from sqlalchemy.orm.exc import StaleDataError
from starlette.requests import Request

from timesheet_manager.core.exceptions import (
    AlreadyDecidedError,
    EmptySubmissionError,
    ForbiddenError,
    InvalidStateError,
    MissingRejectionReasonError,
    NotFoundError,
)
from timesheet_manager.core.exceptions import concurrency_exception_handler
from timesheet_manager.db.repositories.audit_log_repository import AuditLogRepository
from timesheet_manager.db.repositories.timesheet_repository import TimesheetRepository
from timesheet_manager.models import (
    Approval,
    ApprovalStatus,
    AuditAction,
    NotificationType,
    TimeEntry,
    Timesheet,
    TimesheetStatus,
)
from timesheet_manager.schemas.approval import ApprovalDecisionRequest
from timesheet_manager.services.audit_service import AuditService
from timesheet_manager.services.notification_service import NotificationEmitter, NotificationService
from timesheet_manager.services.timesheet_approval_service import (
    REOPEN_COMMENT,
    TimesheetApprovalService,
)
from timesheet_manager.services.timesheet_service import TimesheetService


class RecordingEmitter(NotificationEmitter):
    def __init__(self):
        self.sent = []

    async def emit(self, recipient_id, type, title, message, payload=None):
        self.sent.append((recipient_id, type, payload))


async def _approvals(session, timesheet_id):
    result = await session.execute(
        select(Approval)
        .where(Approval.timesheet_id == timesheet_id)
        .execution_options(populate_existing=True)
    )
    return {a.validator_id: a for a in result.scalars().all()}


def _decision(timesheet_id, status, comment=None):
    return ApprovalDecisionRequest(timesheet_id=timesheet_id, status=status, comment=comment)


@pytest.fixture
async def submitted(test_db_session, make_timesheet, owner, project):
    """Two entries totalling a full day, submitted by the owner."""
    timesheet = await make_timesheet(owner, [(project, 240), (project, 240)])
    await TimesheetService(test_db_session).submit_timesheet(owner, timesheet.id)
    return timesheet


async def test_submit_creates_pending_approval_per_validator(
    test_db_session, make_timesheet, owner, manager, validator, project
):
    timesheet = await make_timesheet(owner, [(project, 240), (project, 240)])

    response = await TimesheetService(test_db_session).submit_timesheet(owner, timesheet.id)

    assert response.status == TimesheetStatus.SUBMITTED
    assert response.total_minutes == 480
    assert response.total_hours == 8.0
    assert response.submitted_at is not None
    assert len(response.integrity_hash) == 64
    assert response.locked_at is None

    approvals = await _approvals(test_db_session, timesheet.id)
    assert set(approvals) == {validator.id, manager.id}
    assert all(a.status == ApprovalStatus.PENDING for a in approvals.values())


async def test_submit_notifies_each_validator(test_db_session, make_timesheet, owner, manager, validator, project):
    emitter = RecordingEmitter()
    timesheet = await make_timesheet(owner, [(project, 60)])

    await TimesheetService(test_db_session, notifier=emitter).submit_timesheet(owner, timesheet.id)

    assert {recipient for recipient, _, _ in emitter.sent} == {validator.id, manager.id}
    assert all(t == NotificationType.TIMESHEET_SUBMITTED for _, t, _ in emitter.sent)
    assert emitter.sent[0][2]["timesheet_id"] == str(timesheet.id)


async def test_submit_preconditions(test_db_session, make_timesheet, owner, admin, project):
    service = TimesheetService(test_db_session)
    empty = await make_timesheet(owner)

    with pytest.raises(EmptySubmissionError):
        await service.submit_timesheet(owner, empty.id)
    assert empty.status == TimesheetStatus.DRAFT

    with pytest.raises(NotFoundError):
        await service.submit_timesheet(owner, admin.id)

    full = await make_timesheet(owner, [(project, 60)], week_start=empty.week_start.replace(day=11))
    with pytest.raises(ForbiddenError):
        await service.submit_timesheet(admin, full.id)

    await service.submit_timesheet(owner, full.id)
    with pytest.raises(InvalidStateError):
        await service.submit_timesheet(owner, full.id)


async def test_submit_without_any_validator_is_refused(test_db_session, make_timesheet, make_user, internal_project):
    loner = await make_user()
    timesheet = await make_timesheet(loner, [(internal_project, 60)])

    with pytest.raises(InvalidStateError):
        await TimesheetService(test_db_session).submit_timesheet(loner, timesheet.id)

    assert timesheet.status == TimesheetStatus.DRAFT
    assert await _approvals(test_db_session, timesheet.id) == {}


async def test_approve_locks_timesheet(test_db_session, submitted, owner, manager, validator):
    service = TimesheetApprovalService(test_db_session)

    approval = await service.decide(validator, _decision(submitted.id, "APPROVED"))

    assert approval.status == ApprovalStatus.APPROVED
    assert approval.comment is None
    assert approval.decided_at is not None
    assert len(approval.signature) == 64
    assert submitted.status == TimesheetStatus.APPROVED
    assert submitted.locked_at is not None
    assert submitted.locked_by_id == validator.id

    # The other validator's row is left untouched until reopen
    approvals = await _approvals(test_db_session, submitted.id)
    assert approvals[manager.id].status == ApprovalStatus.PENDING


async def test_reject_requires_comment(test_db_session, submitted, validator):
    service = TimesheetApprovalService(test_db_session)

    with pytest.raises(MissingRejectionReasonError):
        await service.decide(validator, _decision(submitted.id, "REJECTED", "   "))
    assert submitted.status == TimesheetStatus.SUBMITTED

    approval = await service.decide(validator, _decision(submitted.id, "REJECTED", "Missing Friday"))

    assert approval.comment == "Missing Friday"
    assert submitted.status == TimesheetStatus.REJECTED


async def test_first_decision_wins(test_db_session, submitted, owner, manager, validator):
    service = TimesheetApprovalService(test_db_session)
    await service.decide(validator, _decision(submitted.id, "APPROVED"))

    with pytest.raises(AlreadyDecidedError):
        await service.decide(validator, _decision(submitted.id, "REJECTED", "changed my mind"))
    with pytest.raises(AlreadyDecidedError):
        await service.decide(manager, _decision(submitted.id, "REJECTED", "too late"))
    with pytest.raises(AlreadyDecidedError):
        await service.decide(owner, _decision(submitted.id, "APPROVED"))

    assert submitted.status == TimesheetStatus.APPROVED


async def test_owner_cannot_decide_own_timesheet(test_db_session, submitted, owner):
    with pytest.raises(AlreadyDecidedError):
        await TimesheetApprovalService(test_db_session).decide(owner, _decision(submitted.id, "APPROVED"))


async def test_admin_decides_without_assignment(test_db_session, submitted, admin, owner):
    approval = await TimesheetApprovalService(test_db_session).decide(
        admin, _decision(submitted.id, "REJECTED", "Wrong project")
    )

    assert approval.validator_id == admin.id
    assert submitted.status == TimesheetStatus.REJECTED
    assert submitted.locked_by_id == admin.id


async def test_reopen_closes_pending_approvals(test_db_session, submitted, admin, manager, validator):
    service = TimesheetApprovalService(test_db_session)
    await service.decide(validator, _decision(submitted.id, "APPROVED"))

    response = await service.reopen(admin, submitted.id, comment="Add the missing hour")

    assert response.status == TimesheetStatus.REOPENED
    assert response.locked_at is None
    assert response.locked_by_id is None

    approvals = await _approvals(test_db_session, submitted.id)
    assert approvals[validator.id].status == ApprovalStatus.APPROVED
    assert approvals[manager.id].status == ApprovalStatus.REJECTED
    assert approvals[manager.id].comment == REOPEN_COMMENT


async def test_reopen_rules(test_db_session, submitted, owner, validator):
    service = TimesheetApprovalService(test_db_session)

    # Still awaiting a decision
    with pytest.raises(InvalidStateError):
        await service.reopen(validator, submitted.id)

    await service.decide(validator, _decision(submitted.id, "REJECTED", "Fix Tuesday"))

    with pytest.raises(ForbiddenError):
        await service.reopen(owner, submitted.id)
    assert submitted.status == TimesheetStatus.REJECTED

    await service.reopen(validator, submitted.id)
    with pytest.raises(InvalidStateError):
        await service.reopen(validator, submitted.id)


async def test_resubmission_reuses_approval_rows(test_db_session, submitted, owner, admin, manager, validator):
    approvals = TimesheetApprovalService(test_db_session)
    await approvals.decide(validator, _decision(submitted.id, "REJECTED", "Fix Tuesday"))
    await approvals.reopen(admin, submitted.id)

    response = await TimesheetService(test_db_session).submit_timesheet(owner, submitted.id)

    assert response.status == TimesheetStatus.SUBMITTED
    rows = await _approvals(test_db_session, submitted.id)
    assert set(rows) == {validator.id, manager.id}
    assert all(a.status == ApprovalStatus.PENDING for a in rows.values())
    assert all(a.comment is None and a.signature is None for a in rows.values())


async def test_decisions_notify_owner(test_db_session, submitted, owner, validator):
    service = TimesheetApprovalService(test_db_session)
    await service.decide(validator, _decision(submitted.id, "REJECTED", "Fix Tuesday"))
    await service.reopen(validator, submitted.id)

    inbox = await NotificationService(test_db_session).list_notifications(owner.id)

    types = [n.type for n in inbox.items]
    assert NotificationType.TIMESHEET_REJECTED in types
    assert NotificationType.TIMESHEET_REOPENED in types
    rejected = next(n for n in inbox.items if n.type == NotificationType.TIMESHEET_REJECTED)
    assert "Fix Tuesday" in rejected.message

    validator_inbox = await NotificationService(test_db_session).list_notifications(validator.id)
    assert [n.type for n in validator_inbox.items] == [NotificationType.TIMESHEET_SUBMITTED]


async def test_workflow_is_audited_and_signed(test_db_session, submitted, admin, validator):
    service = TimesheetApprovalService(test_db_session)
    await service.decide(validator, _decision(submitted.id, "APPROVED"))
    await service.reopen(admin, submitted.id)

    records = await AuditLogRepository(test_db_session).search(
        resource_type="timesheet", resource_id=str(submitted.id)
    )
    actions = {r.action for r in records}

    assert {AuditAction.SUBMIT, AuditAction.APPROVE, AuditAction.REOPEN} <= actions
    verifier = AuditService(test_db_session)
    assert all(verifier.verify(r) for r in records)


async def test_integrity_check_detects_changed_entries(test_db_session, submitted, owner, validator):
    service = TimesheetService(test_db_session)
    await TimesheetApprovalService(test_db_session).decide(validator, _decision(submitted.id, "APPROVED"))

    report = await service.check_integrity(owner, submitted.id)
    assert report.submission_valid is True
    assert [d.valid for d in report.decisions] == [True]

    # Edit an entry behind the workflow's back
    entry = (
        await test_db_session.execute(select(TimeEntry).where(TimeEntry.timesheet_id == submitted.id))
    ).scalars().first()
    entry.duration = 300
    await test_db_session.commit()

    report = await service.check_integrity(owner, submitted.id)
    assert report.submission_valid is False


async def test_open_timesheet_has_no_submission_to_check(test_db_session, make_timesheet, owner, project):
    timesheet = await make_timesheet(owner, [(project, 60)])

    report = await TimesheetService(test_db_session).check_integrity(owner, timesheet.id)

    assert report.submission_valid is None
    assert report.decisions == []


async def test_validation_queue(test_db_session, submitted, admin, manager, validator):
    service = TimesheetApprovalService(test_db_session)

    mine = await service.list_approvals(validator, status=ApprovalStatus.PENDING)
    everything = await service.list_approvals(admin)

    assert mine.total == 1
    assert mine.items[0].owner_name == "Olive Owner"
    assert mine.items[0].total_hours == 8.0
    assert mine.items[0].timesheet_status == "SUBMITTED"
    assert everything.total == 2


async def test_stale_version_is_a_conflict(test_db_session, owner, project, make_timesheet):
    timesheet = await make_timesheet(owner, [(project, 60)])
    # Another transaction moves the row on without this session noticing
    await test_db_session.execute(
        update(Timesheet)
        .where(Timesheet.id == timesheet.id)
        .values(version=Timesheet.version + 1)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(InvalidStateError) as exc_info:
        await TimesheetRepository(test_db_session).update(timesheet, name="Renamed")

    assert exc_info.value.status_code == 409
    assert "modified concurrently" in exc_info.value.message


async def test_concurrent_week_creation_reuses_existing_sheet(test_db_session, owner, make_timesheet):
    existing = await make_timesheet(owner)
    service = TimesheetService(test_db_session)
    lookup = service.timesheet_repo.get_by_user_and_week
    calls = []

    async def lookup_after_race(*args, **kwargs):
        # First lookup runs before the competing insert is visible
        calls.append(args)
        if len(calls) == 1:
            return None
        return await lookup(*args, **kwargs)

    service.timesheet_repo.get_by_user_and_week = lookup_after_race

    timesheet = await service.get_or_create_for_week(owner.id, existing.week_start, owner.id)

    assert timesheet.id == existing.id
    assert len(calls) == 2
    created = await AuditLogRepository(test_db_session).search(resource_type="timesheet", action=AuditAction.CREATE)
    assert created == []


async def test_lost_race_at_commit_maps_to_conflict():
    request = Request({"type": "http", "method": "POST", "path": "/api/v1/time-entries", "headers": []})

    response = await concurrency_exception_handler(request, StaleDataError("version mismatch"))

    assert response.status_code == 409
    body = json.loads(response.body)
    assert body["error"]["type"] == "InvalidStateError"
    assert body["error"]["path"] == "/api/v1/time-entries"
