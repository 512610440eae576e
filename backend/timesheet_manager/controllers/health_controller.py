"""
Health controller.
"""

from timesheet_manager.controllers.base_controller import BaseController
from timesheet_manager.schemas.health import HealthResponse
from timesheet_manager.services.health_service import HealthService


class HealthController(BaseController):
    """Thin wrapper so the health route is built like every other route."""

    def __init__(self, health_service: HealthService):
        self.health_service = health_service

    async def get_health(self) -> HealthResponse:
        return await self.health_service.get_health()
