"""
Notification emitter and notification queries.

The workflow only states that a notification should be sent; delivery and
read tracking belong to whatever consumes the stored rows.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.db.repositories.notification_repository import NotificationRepository
from timesheet_manager.models.notification import Notification, NotificationType
from timesheet_manager.schemas.notification import NotificationResponse, NotificationListResponse
from timesheet_manager.services.base_service import BaseService

logger = logging.getLogger(__name__)


class NotificationEmitter(ABC):
    """Receives structured events addressed to a single user."""

    @abstractmethod
    async def emit(
        self,
        recipient_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class DatabaseNotificationEmitter(NotificationEmitter):
    """Stores the notification in the same transaction as the triggering change."""

    def __init__(self, session: AsyncSession):
        self.notification_repo = NotificationRepository(session)

    async def emit(
        self,
        recipient_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = await self.notification_repo.create(
            user_id=recipient_id,
            type=type,
            title=title,
            message=message,
            data=payload,
        )
        logger.info(
            f"Notification queued: {type.value}",
            extra={"recipient_id": str(recipient_id), "notification_id": str(notification.id)},
        )
        return notification


class NotificationService(BaseService):
    """Service for reading the acting user's notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.notification_repo = NotificationRepository(session)

    async def list_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> NotificationListResponse:
        notifications = await self.notification_repo.list_for_user(
            user_id, unread_only=unread_only, skip=skip, limit=limit
        )
        total = await self.notification_repo.count_for_user(user_id, unread_only=unread_only)
        return NotificationListResponse(
            items=[NotificationResponse.model_validate(n) for n in notifications],
            total=total,
        )
