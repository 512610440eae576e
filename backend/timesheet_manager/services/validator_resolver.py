"""
Validator resolution - who must decide on a timesheet.

Project validators of every project the sheet's entries reference, plus the
owner's manager. When that yields nobody, every active validator and
administrator is eligible. The owner and inactive accounts are never
included. Reads only; the result is a sorted list so repeated calls agree.
"""

from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.db.repositories.project_repository import ProjectRepository
from timesheet_manager.db.repositories.time_entry_repository import TimeEntryRepository
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.timesheet import Timesheet
from timesheet_manager.models.user import UserRole
from timesheet_manager.services.base_service import BaseService

FALLBACK_ROLES = (UserRole.VALIDATOR, UserRole.ADMIN)


class ValidatorResolver(BaseService):
    """Computes the validator set for a timesheet."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.entry_repo = TimeEntryRepository(session)
        self.project_repo = ProjectRepository(session)
        self.user_repo = UserRepository(session)

    async def resolve(self, timesheet: Timesheet) -> List[UUID]:
        owner_id = timesheet.user_id

        project_ids = await self.entry_repo.list_project_ids(timesheet.id)
        candidates = set(await self.project_repo.list_validator_ids(project_ids))

        manager_id = await self.user_repo.get_manager_id(owner_id)
        if manager_id is not None:
            manager = await self.user_repo.get(manager_id)
            if manager and manager.is_active:
                candidates.add(manager_id)

        candidates.discard(owner_id)

        if not candidates:
            candidates = set(await self.user_repo.list_active_ids_by_roles(FALLBACK_ROLES))
            candidates.discard(owner_id)

        return sorted(candidates, key=str)

    async def is_resolved_validator(self, timesheet: Timesheet, user_id: UUID) -> bool:
        """Whether user_id is in the validator set the sheet would resolve to now."""
        return user_id in await self.resolve(timesheet)
