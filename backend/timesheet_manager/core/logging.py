"""
Logging setup.
Modules log through ``logging.getLogger(__name__)`` and pass structured
context with ``extra=``.
"""

import logging
import sys

from timesheet_manager.core.config import settings

# Contained audit-write failures; kept at ERROR whatever LOG_LEVEL says.
AUDIT_FAILURE_LOGGER = "timesheet_manager.audit.failures"


def setup_logging() -> None:
    """
    Configure process-wide logging with a stdout handler.
    """
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Database drivers are noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger(AUDIT_FAILURE_LOGGER).setLevel(logging.ERROR)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={"environment": settings.OTEL_ENVIRONMENT, "level": logging.getLevelName(level)},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module."""
    return logging.getLogger(name)
