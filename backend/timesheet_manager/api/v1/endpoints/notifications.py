"""
Notification API endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.api.v1.middleware import require_authentication
from timesheet_manager.controllers.notification_controller import NotificationController
from timesheet_manager.db.session import get_db
from timesheet_manager.models.user import User
from timesheet_manager.schemas.notification import NotificationListResponse

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_authentication),
):
    """Notifications addressed to the current user, newest first."""
    controller = NotificationController(db)
    return await controller.list_notifications(current_user, unread_only, skip, limit)
