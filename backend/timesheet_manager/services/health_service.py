"""
Health service.
Reports uptime and whether the database and timesheet schema are reachable.
"""

import time
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_manager.core.config import settings
from timesheet_manager.db.repositories.health_repository import HealthRepository
from timesheet_manager.services.base_service import BaseService
from timesheet_manager.schemas.health import HealthResponse


class HealthService(BaseService):
    """Service for health check operations."""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self.start_time = time.time()
        self.session_factory = session_factory

    def _get_session_factory(self) -> Callable[[], AsyncSession]:
        if self.session_factory is not None:
            return self.session_factory
        from timesheet_manager.db import session as db_session

        if db_session.async_session_maker is None:
            db_session.create_sessionmaker()
        return db_session.async_session_maker

    async def get_health(self) -> HealthResponse:
        """
        Get system health status.

        Returns:
            HealthResponse with status, version, uptime, and checks
        """
        uptime_seconds = int(time.time() - self.start_time)
        checks = {}

        try:
            async with self._get_session_factory()() as session:
                repo = HealthRepository(session=session)
                db_ok = await repo.check_database()
                checks["database"] = "ok" if db_ok else "error"
                if db_ok:
                    checks["schema"] = "ok" if await repo.check_schema() else "missing"
        except (SQLAlchemyError, OSError) as e:
            checks["database"] = f"error: {str(e)}"

        status = "ok" if all(check == "ok" for check in checks.values()) else "degraded"

        return HealthResponse(
            status=status,
            version=settings.VERSION,
            uptime=f"PT{uptime_seconds}S",  # ISO 8601 duration
            checks=checks,
        )
