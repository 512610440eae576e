"""
Database engine and per-request sessions (async SQLAlchemy 2.0).

Each request gets one AsyncSession. Services commit it at the end of a
workflow operation; anything left pending is committed here, and any error
rolls the whole request back.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from typing import AsyncGenerator, Optional

from timesheet_manager.core.config import settings
from timesheet_manager.core.logging import get_logger

logger = get_logger(__name__)

# Global engine and sessionmaker
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine() -> AsyncEngine:
    """Create the async engine. SQLite URLs get the driver's default pool."""
    global engine

    options = {"echo": settings.DB_ECHO}
    if not settings.DATABASE_URL.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )

    engine = create_async_engine(settings.DATABASE_URL, **options)

    logger.info(
        "Database engine created",
        extra={
            "dialect": engine.dialect.name,
            "pool_size": options.get("pool_size"),
            "max_overflow": options.get("max_overflow"),
        },
    )
    return engine


def create_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Create the sessionmaker. Instances stay readable after commit."""
    global async_session_maker

    if engine is None:
        create_engine()

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database session.
    One session, and therefore one transaction, per request: everything a
    workflow operation writes is committed together or rolled back together.
    """
    if async_session_maker is None:
        create_sessionmaker()

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Initialize database connection."""
    if async_session_maker is None:
        create_sessionmaker()

    logger.info("Database initialized", extra={"dialect": engine.dialect.name})


async def close_db() -> None:
    """Dispose of pooled connections and forget the engine."""
    global engine, async_session_maker

    if engine is not None:
        await engine.dispose()
        logger.info("Database connections closed")
    engine = None
    async_session_maker = None
