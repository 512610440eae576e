"""
Time entry tests: week filing, total recomputation and locking.
"""

from datetime import date

import pytest

from timesheet_manager.core.exceptions import ForbiddenError, LockedError, NotFoundError
from timesheet_manager.db.repositories.audit_log_repository import AuditLogRepository
from timesheet_manager.db.repositories.timesheet_repository import TimesheetRepository
from timesheet_manager.models import AuditAction, TimesheetStatus
from timesheet_manager.schemas.timesheet import TimeEntryCreate, TimeEntryUpdate
from timesheet_manager.services.time_entry_service import TimeEntryService
from timesheet_manager.services.timesheet_service import week_bounds

MONDAY = date(2024, 3, 4)
WEDNESDAY = date(2024, 3, 6)
NEXT_TUESDAY = date(2024, 3, 12)


def _entry(project, day=MONDAY, minutes=120, **kwargs) -> TimeEntryCreate:
    return TimeEntryCreate(date=day, duration=minutes, project_id=project.id, **kwargs)


async def _sheet(session, owner, day):
    week_start, _ = week_bounds(day)
    return await TimesheetRepository(session).get_by_user_and_week(owner.id, week_start)


def test_week_bounds_start_on_monday():
    assert week_bounds(WEDNESDAY) == (MONDAY, date(2024, 3, 10))
    assert week_bounds(MONDAY) == (MONDAY, date(2024, 3, 10))
    assert week_bounds(date(2024, 3, 10)) == (MONDAY, date(2024, 3, 10))


async def test_create_files_entry_in_weekly_draft_sheet(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)

    first = await service.create_entry(owner, _entry(project, MONDAY, 240))
    second = await service.create_entry(owner, _entry(project, WEDNESDAY, 240))

    timesheet = await _sheet(test_db_session, owner, MONDAY)
    assert timesheet.status == TimesheetStatus.DRAFT
    assert first.timesheet_id == second.timesheet_id == timesheet.id
    assert timesheet.total_minutes == 480
    assert timesheet.total_hours == 8.0


async def test_billable_defaults_to_project_flag(test_db_session, owner, project, internal_project):
    service = TimeEntryService(test_db_session)

    billable = await service.create_entry(owner, _entry(project))
    internal = await service.create_entry(owner, _entry(internal_project))
    overridden = await service.create_entry(owner, _entry(project, is_billable=False))

    assert billable.is_billable is True
    assert internal.is_billable is False
    assert overridden.is_billable is False


async def test_total_is_recomputed_on_update_and_delete(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)
    a = await service.create_entry(owner, _entry(project, MONDAY, 100))
    b = await service.create_entry(owner, _entry(project, WEDNESDAY, 200))
    timesheet = await _sheet(test_db_session, owner, MONDAY)

    await service.update_entry(owner, a.id, TimeEntryUpdate(duration=130))
    assert timesheet.total_minutes == 330

    await service.delete_entry(owner, b.id)
    assert timesheet.total_minutes == 130

    await service.delete_entry(owner, a.id)
    assert timesheet.total_minutes == 0


async def test_moving_entry_to_another_week_refiles_it(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)
    await service.create_entry(owner, _entry(project, MONDAY, 60))
    moved = await service.create_entry(owner, _entry(project, WEDNESDAY, 90))

    updated = await service.update_entry(owner, moved.id, TimeEntryUpdate(date=NEXT_TUESDAY))

    this_week = await _sheet(test_db_session, owner, MONDAY)
    next_week = await _sheet(test_db_session, owner, NEXT_TUESDAY)
    assert updated.timesheet_id == next_week.id
    assert this_week.total_minutes == 60
    assert next_week.total_minutes == 90


@pytest.mark.parametrize(
    "status",
    [TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED, TimesheetStatus.REJECTED],
)
async def test_entries_are_locked_outside_open_states(test_db_session, owner, project, status):
    service = TimeEntryService(test_db_session)
    entry = await service.create_entry(owner, _entry(project, MONDAY, 60))
    timesheet = await _sheet(test_db_session, owner, MONDAY)
    await TimesheetRepository(test_db_session).update(timesheet, status=status)
    await test_db_session.commit()

    with pytest.raises(LockedError):
        await service.create_entry(owner, _entry(project, WEDNESDAY, 60))
    with pytest.raises(LockedError):
        await service.update_entry(owner, entry.id, TimeEntryUpdate(duration=30))
    with pytest.raises(LockedError):
        await service.delete_entry(owner, entry.id)

    assert timesheet.total_minutes == 60


async def test_reopened_sheet_accepts_entries(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)
    await service.create_entry(owner, _entry(project, MONDAY, 60))
    timesheet = await _sheet(test_db_session, owner, MONDAY)
    await TimesheetRepository(test_db_session).update(timesheet, status=TimesheetStatus.REOPENED)

    await service.create_entry(owner, _entry(project, WEDNESDAY, 30))

    assert timesheet.total_minutes == 90


async def test_cannot_move_entry_into_locked_week(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)
    entry = await service.create_entry(owner, _entry(project, MONDAY, 60))
    await service.create_entry(owner, _entry(project, NEXT_TUESDAY, 60))
    next_week = await _sheet(test_db_session, owner, NEXT_TUESDAY)
    await TimesheetRepository(test_db_session).update(next_week, status=TimesheetStatus.APPROVED)

    with pytest.raises(LockedError):
        await service.update_entry(owner, entry.id, TimeEntryUpdate(date=NEXT_TUESDAY))


async def test_only_owner_or_admin_may_change_entries(test_db_session, owner, admin, validator, project):
    service = TimeEntryService(test_db_session)
    entry = await service.create_entry(owner, _entry(project))

    with pytest.raises(ForbiddenError):
        await service.update_entry(validator, entry.id, TimeEntryUpdate(duration=10))
    with pytest.raises(ForbiddenError):
        await service.create_entry(validator, _entry(project, user_id=owner.id))

    updated = await service.update_entry(admin, entry.id, TimeEntryUpdate(duration=10))
    on_behalf = await service.create_entry(admin, _entry(project, WEDNESDAY, 15, user_id=owner.id))

    assert updated.duration == 10
    assert on_behalf.user_id == owner.id
    assert (await _sheet(test_db_session, owner, MONDAY)).total_minutes == 25


async def test_project_and_sub_project_validation(test_db_session, owner, project, sub_project, internal_project):
    service = TimeEntryService(test_db_session)

    with pytest.raises(NotFoundError):
        await service.create_entry(
            owner, TimeEntryCreate(date=MONDAY, duration=10, project_id=owner.id)
        )
    with pytest.raises(ValueError):
        await service.create_entry(owner, _entry(internal_project, sub_project_id=sub_project.id))

    entry = await service.create_entry(owner, _entry(project, sub_project_id=sub_project.id))
    assert entry.sub_project_id == sub_project.id

    # Changing project drops the sub-project
    moved = await service.update_entry(owner, entry.id, TimeEntryUpdate(project_id=internal_project.id))
    assert moved.sub_project_id is None


async def test_end_time_must_follow_start_time(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)
    entry = await service.create_entry(owner, _entry(project, start_time="09:00", end_time="11:00"))

    with pytest.raises(ValueError):
        await service.update_entry(owner, entry.id, TimeEntryUpdate(end_time="08:00"))
    with pytest.raises(ValueError):
        TimeEntryCreate(date=MONDAY, duration=10, project_id=project.id, start_time="10:00", end_time="09:00")


async def test_mutations_are_audited(test_db_session, owner, project):
    service = TimeEntryService(test_db_session)
    entry = await service.create_entry(owner, _entry(project, MONDAY, 60))
    await service.update_entry(owner, entry.id, TimeEntryUpdate(duration=45))
    await service.delete_entry(owner, entry.id)

    records = await AuditLogRepository(test_db_session).search(resource_type="time_entry", resource_id=str(entry.id))
    by_action = {r.action: r for r in records}

    assert set(by_action) == {AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE}
    assert by_action[AuditAction.UPDATE].old_values["duration"] == 60
    assert by_action[AuditAction.UPDATE].new_values["duration"] == 45
    assert by_action[AuditAction.DELETE].old_values["duration"] == 45
    assert all(r.user_id == owner.id for r in records)


async def test_list_entries(test_db_session, owner, admin, validator, project, internal_project):
    service = TimeEntryService(test_db_session)
    await service.create_entry(owner, _entry(project, MONDAY, 60))
    await service.create_entry(owner, _entry(internal_project, WEDNESDAY, 30))
    await service.create_entry(owner, _entry(project, NEXT_TUESDAY, 15))

    everything = await service.list_entries(owner)
    this_week = await service.list_entries(owner, start_date=MONDAY, end_date=date(2024, 3, 10))
    apollo = await service.list_entries(admin, user_id=owner.id, project_id=project.id)

    assert everything.total == 3
    assert everything.items[0].date == NEXT_TUESDAY
    assert this_week.total == 2
    assert apollo.total == 2
    with pytest.raises(ForbiddenError):
        await service.list_entries(validator, user_id=owner.id)
