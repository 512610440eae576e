"""
API v1 router that aggregates all endpoint routers.
All routes require a fully authenticated session except health and the
second-factor routes.
"""

from fastapi import APIRouter, Depends
from timesheet_manager.api.v1.middleware import require_authentication

from timesheet_manager.api.v1.endpoints import (
    health,
    auth,
    time_entries,
    timesheets,
    approvals,
    audit_logs,
    users,
    notifications,
    projects,
    team,
)

api_router = APIRouter()

# Public routes (no authentication required)
api_router.include_router(health.router, tags=["health"])

# Second-factor routes accept sessions that are still pending
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])

# Protected routes (authentication required for all endpoints)
# Authentication is enforced via dependency injection at the router level
api_router.include_router(
    time_entries.router,
    prefix="/time-entries",
    tags=["time-entries"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    timesheets.router,
    prefix="/timesheets",
    tags=["timesheets"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    approvals.router,
    prefix="/approvals",
    tags=["approvals"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    audit_logs.router,
    prefix="/audit-logs",
    tags=["audit-logs"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    projects.router,
    prefix="/projects",
    tags=["projects"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    team.router,
    prefix="/team",
    tags=["team"],
    dependencies=[Depends(require_authentication)],
)
