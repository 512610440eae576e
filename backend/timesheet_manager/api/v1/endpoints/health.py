"""
Health check endpoint.
Answers 200 while the database and schema respond, 503 once degraded.
"""

from fastapi import APIRouter, Response, status

from timesheet_manager.schemas.health import HealthResponse
from timesheet_manager.deps.di_container import get_container

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def get_health(response: Response) -> HealthResponse:
    """Report service health for load balancers and uptime monitors."""
    controller = get_container().health_controller()
    health = await controller.get_health()
    if health.status != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health
