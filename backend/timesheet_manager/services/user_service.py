"""
User service - administrative provisioning, role and manager changes.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.exceptions import NotFoundError, InvalidStateError, ManagerCycleError
from timesheet_manager.db.repositories.user_repository import UserRepository
from timesheet_manager.models.audit_log import AuditAction
from timesheet_manager.models.user import User
from timesheet_manager.schemas.user import UserCreate, UserUpdate, UserResponse
from timesheet_manager.services.access_policy import AccessPolicy, require
from timesheet_manager.services.audit_service import AuditService, AuditContext, snapshot
from timesheet_manager.services.base_service import BaseService

logger = logging.getLogger(__name__)

# Never copied into audit snapshots
SECRET_FIELDS = ("totp_secret",)


class UserService(BaseService):
    """Service for user operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.session = session
        self.user_repo = UserRepository(session)
        self.audit = AuditService(session, context=audit_context)
        self.policy = AccessPolicy(session)

    async def check_manager_assignment(self, user_id: UUID, manager_id: UUID) -> None:
        """
        Reject an assignment that would make the manager graph cyclic.

        Walks up from the proposed manager; reaching ``user_id`` means the
        user would (indirectly) manage themselves.
        """
        if manager_id == user_id:
            raise ManagerCycleError("A user cannot be their own manager")

        seen = set()
        current: Optional[UUID] = manager_id
        while current is not None and current not in seen:
            if current == user_id:
                raise ManagerCycleError(details={"user_id": str(user_id), "manager_id": str(manager_id)})
            seen.add(current)
            current = await self.user_repo.get_manager_id(current)

    async def _get_manager(self, manager_id: UUID) -> User:
        manager = await self.user_repo.get(manager_id)
        if not manager:
            raise NotFoundError("Manager")
        if not manager.is_active:
            raise InvalidStateError("Manager account is not active")
        return manager

    async def get_user(self, user_id: UUID) -> UserResponse:
        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("User")
        return UserResponse.model_validate(user)

    async def create_user(self, actor: User, data: UserCreate) -> UserResponse:
        require(self.policy.can_administer(actor))

        email = data.email.lower()
        if await self.user_repo.get_by_email(email):
            raise InvalidStateError("A user with this email already exists", details={"email": email})
        if data.manager_id is not None:
            await self._get_manager(data.manager_id)

        user = await self.user_repo.create(
            email=email,
            name=data.name,
            role=data.role,
            manager_id=data.manager_id,
            auth_provider=data.auth_provider,
        )
        await self.audit.log_crud(
            AuditAction.CREATE,
            "user",
            user.id,
            actor.id,
            new_values=snapshot(user, exclude=SECRET_FIELDS),
        )
        await self.session.commit()
        logger.info("User created", extra={"user_id": str(user.id), "role": user.role.value})
        return UserResponse.model_validate(user)

    async def update_user(self, actor: User, user_id: UUID, data: UserUpdate) -> UserResponse:
        """Change name, role or manager. An explicit null manager_id clears the manager."""
        require(self.policy.can_administer(actor))

        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("User")

        changes = data.model_dump(exclude_unset=True)
        for key in ("name", "role"):
            if key in changes and changes[key] is None:
                raise ValueError(f"{key} cannot be null")
        if changes.get("manager_id") is not None:
            await self._get_manager(changes["manager_id"])
            await self.check_manager_assignment(user.id, changes["manager_id"])

        old_values = snapshot(user, exclude=SECRET_FIELDS)
        await self.user_repo.update(user, **changes)
        await self.audit.log_crud(
            AuditAction.UPDATE,
            "user",
            user.id,
            actor.id,
            old_values=old_values,
            new_values=snapshot(user, exclude=SECRET_FIELDS),
        )
        await self.session.commit()
        return UserResponse.model_validate(user)

    async def deactivate_user(self, actor: User, user_id: UUID) -> UserResponse:
        """Soft-deactivate; users are never hard-deleted."""
        require(self.policy.can_administer(actor))
        if actor.id == user_id:
            raise InvalidStateError("Administrators cannot deactivate themselves")

        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("User")
        if not user.is_active:
            return UserResponse.model_validate(user)

        await self.user_repo.update(user, is_active=False)
        await self.audit.log_crud(
            AuditAction.UPDATE,
            "user",
            user.id,
            actor.id,
            old_values={"is_active": True},
            new_values={"is_active": False},
            details={"deactivated": True},
        )
        await self.session.commit()
        logger.info("User deactivated", extra={"user_id": str(user.id)})
        return UserResponse.model_validate(user)
