"""
Observability hooks.
Unhandled request errors and contained audit-write failures are reported here
so operators see them even when the end user does not.
"""

from typing import Any, Optional
from fastapi import Request
import logging

from timesheet_manager.core.config import settings
from timesheet_manager.core.logging import AUDIT_FAILURE_LOGGER

logger = logging.getLogger(__name__)

# Dedicated channel so audit failures can be routed to alerting separately.
audit_failure_logger = logging.getLogger(AUDIT_FAILURE_LOGGER)


def setup_observability() -> None:
    """Initialize observability for the running service."""
    logger.info(
        "Setting up observability",
        extra={
            "service_name": settings.OTEL_SERVICE_NAME,
            "environment": settings.OTEL_ENVIRONMENT,
        },
    )


def record_exception(exc: Exception, request: Request) -> None:
    """
    Record an exception in the observability backend.

    Args:
        exc: The exception that occurred
        request: The FastAPI request object
    """
    logger.error(
        f"Exception recorded: {type(exc).__name__}",
        extra={
            "exception_message": str(exc),
            "path": request.url.path,
        },
    )


def record_audit_failure(
    exc: Exception,
    action: Any,
    resource_type: str,
    resource_id: Optional[str],
) -> None:
    """
    Report an audit record that could not be written.

    The primary operation has already been allowed to continue; this is the
    only place the failure becomes visible.
    """
    audit_failure_logger.error(
        f"Audit record not written: {type(exc).__name__}: {exc}",
        extra={
            "audit_action": getattr(action, "value", action),
            "resource_type": resource_type,
            "resource_id": resource_id,
        },
        exc_info=exc,
    )
