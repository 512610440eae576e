"""
User controller.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.user import User
from timesheet_manager.schemas.user import UserCreate, UserUpdate, UserResponse
from timesheet_manager.services.audit_service import AuditContext
from timesheet_manager.services.user_service import UserService


class UserController(BaseController):
    """Controller for user operations."""

    def __init__(self, session: AsyncSession, audit_context: Optional[AuditContext] = None):
        self.user_service = UserService(session, audit_context=audit_context)

    async def get_current_user(self, actor: User) -> UserResponse:
        return await self.user_service.get_user(actor.id)

    async def create_user(self, actor: User, data: UserCreate) -> UserResponse:
        return await self.user_service.create_user(actor, data)

    async def update_user(self, actor: User, user_id: UUID, data: UserUpdate) -> UserResponse:
        return await self.user_service.update_user(actor, user_id, data)

    async def deactivate_user(self, actor: User, user_id: UUID) -> UserResponse:
        return await self.user_service.deactivate_user(actor, user_id)
