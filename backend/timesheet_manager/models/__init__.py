"""
Database models.
Import all models here to ensure they're registered with Base.
"""

from timesheet_manager.models.user import User, UserRole, AuthProvider
from timesheet_manager.models.project import (
    Project,
    SubProject,
    ProjectValidator,
    Group,
    GroupMember,
    ProjectGroup,
)
from timesheet_manager.models.timesheet import Timesheet, TimeEntry, TimesheetStatus
from timesheet_manager.models.approval import Approval, ApprovalStatus
from timesheet_manager.models.audit_log import AuditLog, AuditAction
from timesheet_manager.models.notification import Notification, NotificationType

__all__ = [
    "User",
    "UserRole",
    "AuthProvider",
    "Project",
    "SubProject",
    "ProjectValidator",
    "Group",
    "GroupMember",
    "ProjectGroup",
    "Timesheet",
    "TimeEntry",
    "TimesheetStatus",
    "Approval",
    "ApprovalStatus",
    "AuditLog",
    "AuditAction",
    "Notification",
    "NotificationType",
]
