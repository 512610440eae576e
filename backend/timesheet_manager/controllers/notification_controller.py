"""
Notification controller.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.models.user import User
from timesheet_manager.schemas.notification import NotificationListResponse
from timesheet_manager.services.notification_service import NotificationService


class NotificationController(BaseController):
    """Controller for notification queries."""

    def __init__(self, session: AsyncSession):
        self.notification_service = NotificationService(session)

    async def list_notifications(
        self,
        actor: User,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> NotificationListResponse:
        return await self.notification_service.list_notifications(
            actor.id, unread_only=unread_only, skip=skip, limit=limit
        )
