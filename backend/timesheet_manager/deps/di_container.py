"""
Process-wide wiring with dependency-injector.

Only objects that outlive a request live here. Workflow services depend on
the request's AsyncSession, so routers build them per request from get_db.
"""

from dependency_injector import containers, providers

from timesheet_manager.controllers.health_controller import HealthController
from timesheet_manager.services.health_service import HealthService


class Container(containers.DeclarativeContainer):
    """Application container."""

    config = providers.Configuration()

    # One instance so uptime counts from process start
    health_service = providers.Singleton(HealthService)

    health_controller = providers.Factory(
        HealthController,
        health_service=health_service,
    )


_container: Container = None


def get_container() -> Container:
    """Return the application container, creating it on first use."""
    global _container
    if _container is None:
        from timesheet_manager.core.config import settings

        _container = Container()
        _container.config.from_dict({
            "database_url": settings.DATABASE_URL,
            "version": settings.VERSION,
        })
    return _container
