"""
FastAPI application entry point.
Assembles the app with routers, middleware, lifespan handlers, and exception handlers.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from timesheet_manager.api.v1.router import api_router
from timesheet_manager.api.v1.endpoints.health import get_health
from timesheet_manager.core.config import settings
from timesheet_manager.core.exceptions import setup_exception_handlers
from timesheet_manager.core.logging import setup_logging
from timesheet_manager.schemas.health import HealthResponse
from timesheet_manager.core.integrations.observability import setup_observability
from timesheet_manager.db.session import init_db, close_db
from timesheet_manager.deps import di_container


# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    enabled=settings.RATE_LIMIT_ENABLED,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    Initializes logging, observability, the database and the DI container.
    """
    # Startup
    setup_logging()
    setup_observability()

    await init_db()

    container = di_container.Container()
    container.config.from_dict({
        "database_url": settings.DATABASE_URL,
    })
    app.state.container = container
    di_container._container = container

    yield

    # Shutdown
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Timesheet lifecycle, approval workflow and audit integrity API",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Unversioned alias for health checks that do not know the API prefix
    app.add_api_route("/health", get_health, methods=["GET"], response_model=HealthResponse, include_in_schema=False)

    # Global exception handler
    setup_exception_handlers(app)

    return app


app = create_app()
