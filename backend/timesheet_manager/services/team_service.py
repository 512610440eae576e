"""
Team service - weekly submission overview for validators and administrators.
"""

from datetime import date
from typing import Optional, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.db.base import utcnow
from timesheet_manager.db.repositories.project_repository import ProjectRepository
from timesheet_manager.db.repositories.time_entry_repository import TimeEntryRepository
from timesheet_manager.db.repositories.timesheet_repository import TimesheetRepository
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.timesheet import TimesheetStatus
from timesheet_manager.models.user import User, UserRole
from timesheet_manager.schemas.team import PendingTimesheet, TeamMemberStatus, TeamStatusResponse
from timesheet_manager.services.access_policy import AccessPolicy, require
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.services.timesheet_service import week_bounds

SUBMITTED_STATUSES = (TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED)


class TeamService(BaseService):
    """Service for the team status overview."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repo = UserRepository(session)
        self.project_repo = ProjectRepository(session)
        self.entry_repo = TimeEntryRepository(session)
        self.timesheet_repo = TimesheetRepository(session)
        self.policy = AccessPolicy(session)

    async def team_member_ids(self, actor: User) -> Set[UUID]:
        """
        Administrators see every active account. Validators see their direct
        reports plus everyone who logged time on a project they validate.
        """
        if actor.is_admin:
            members = set(await self.user_repo.list_active_ids_by_roles(list(UserRole)))
        else:
            members = set(await self.user_repo.list_subordinate_ids(actor.id))
            project_ids = await self.project_repo.list_validated_project_ids(actor.id)
            members.update(await self.entry_repo.list_user_ids_for_projects(project_ids))
        members.discard(actor.id)
        return members

    async def get_team_status(self, actor: User, week_of: Optional[date] = None) -> TeamStatusResponse:
        """
        Submission status of each team member for one week.

        Members with a sheet awaiting decision come first, then those who
        have not submitted this week, then by name.
        """
        require(self.policy.can_view_team(actor))
        week_start, week_end = week_bounds(week_of or utcnow().date())

        users = [
            u for u in await self.user_repo.get_many(await self.team_member_ids(actor))
            if u.is_active
        ]
        user_ids = [u.id for u in users]

        week_sheets = {
            t.user_id: t for t in await self.timesheet_repo.list_for_users_in_week(user_ids, week_start)
        }
        pending = {}
        for sheet in await self.timesheet_repo.list_for_users_by_status(user_ids, TimesheetStatus.SUBMITTED):
            # Most recent week first: keep the first one seen per user
            pending.setdefault(sheet.user_id, sheet)
        last_submitted = await self.timesheet_repo.last_submitted_at(user_ids)

        items = []
        for user in users:
            week_sheet = week_sheets.get(user.id)
            pending_sheet = pending.get(user.id)
            items.append(
                TeamMemberStatus(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    role=user.role,
                    week_status=week_sheet.status if week_sheet else None,
                    has_submitted_this_week=bool(week_sheet and week_sheet.status in SUBMITTED_STATUSES),
                    total_hours_this_week=week_sheet.total_hours if week_sheet else 0.0,
                    last_submitted_at=last_submitted.get(user.id),
                    pending_timesheet=PendingTimesheet(
                        id=pending_sheet.id,
                        week_start=pending_sheet.week_start,
                        total_hours=pending_sheet.total_hours,
                    ) if pending_sheet else None,
                )
            )

        items.sort(key=lambda m: (m.pending_timesheet is None, m.has_submitted_this_week, m.name))
        return TeamStatusResponse(week_start=week_start, week_end=week_end, items=items)
