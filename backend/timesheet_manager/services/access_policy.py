"""
Access policy gate.

Every workflow entry point asks this module first. Checks return a decision
value (``Allow`` or ``Deny(reason)``) instead of raising, so callers choose
the error that fits the operation; ``require`` raises for the common case.

The session-level second-factor gate runs earlier, at the API boundary
(see ``api.v1.middleware``); nothing here re-checks it.
"""

from dataclasses import dataclass
from typing import Type, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import AppException, ForbiddenError
from timesheet_manager.db.repositories.approval_repository import ApprovalRepository
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.timesheet import Timesheet
from timesheet_manager.models.user import User, UserRole
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.services.validator_resolver import ValidatorResolver


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: str


PolicyDecision = Union[Allow, Deny]

ALLOW = Allow()


def require(decision: PolicyDecision, error: Type[AppException] = ForbiddenError) -> None:
    """Raise ``error`` with the denial reason unless the decision allows."""
    if isinstance(decision, Deny):
        raise error(decision.reason)


class AccessPolicy(BaseService):
    """Ownership and role checks for timesheet workflow operations."""

    def __init__(self, session: AsyncSession, resolver: ValidatorResolver = None):
        self.session = session
        self.resolver = resolver or ValidatorResolver(session)
        self.approval_repo = ApprovalRepository(session)
        self.user_repo = UserRepository(session)

    def can_administer(self, actor: User) -> PolicyDecision:
        if actor.is_admin:
            return ALLOW
        return Deny("Administrator role required")

    def can_view_team(self, actor: User) -> PolicyDecision:
        if actor.is_admin or actor.role == UserRole.VALIDATOR:
            return ALLOW
        return Deny("Validator or administrator role required")

    def can_view_user(self, actor: User, user_id: UUID) -> PolicyDecision:
        if actor.id == user_id or actor.is_admin:
            return ALLOW
        return Deny("Only the user or an administrator can view this account")

    def can_mutate_entry(self, actor: User, owner_id: UUID) -> PolicyDecision:
        if actor.id == owner_id or actor.is_admin:
            return ALLOW
        return Deny("Only the owner or an administrator can change these time entries")

    def can_submit(self, actor: User, timesheet: Timesheet) -> PolicyDecision:
        if actor.id == timesheet.user_id:
            return ALLOW
        return Deny("Only the owner can submit a timesheet")

    async def can_view(self, actor: User, timesheet: Timesheet) -> PolicyDecision:
        if actor.id == timesheet.user_id or actor.is_admin:
            return ALLOW
        if await self.approval_repo.get_by_timesheet_and_validator(timesheet.id, actor.id):
            return ALLOW
        if await self.resolver.is_resolved_validator(timesheet, actor.id):
            return ALLOW
        return Deny("You are not allowed to view this timesheet")

    async def can_decide(self, actor: User, timesheet: Timesheet) -> PolicyDecision:
        """
        A pending approval addressed to the actor, or administrator rights.

        Administrators decide through a synthetic approval row created on
        demand. Owners never decide on their own sheet.
        """
        if actor.id == timesheet.user_id:
            return Deny("Owners cannot decide on their own timesheet")
        if actor.is_admin:
            return ALLOW
        if await self.approval_repo.get_pending(timesheet.id, actor.id):
            return ALLOW
        return Deny("Not authorized to decide on this timesheet, or already decided")

    async def can_reopen(self, actor: User, timesheet: Timesheet) -> PolicyDecision:
        # Ownership is checked before any role: an administrator cannot reopen their own sheet.
        if actor.id == timesheet.user_id:
            return Deny("Owners cannot reopen their own timesheet")
        if actor.is_admin:
            return ALLOW
        if await self.resolver.is_resolved_validator(timesheet, actor.id):
            return ALLOW
        if await self.user_repo.get_manager_id(timesheet.user_id) == actor.id:
            return ALLOW
        return Deny("Only an administrator, a validator of this timesheet or the owner's manager can reopen it")
