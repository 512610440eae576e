"""
Pytest configuration and fixtures.
Provides an in-memory database session, seeded users and projects, and a
test app client bound to the same session.
"""

import os
from datetime import date, timedelta

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-session-tokens-0123456789")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from timesheet_manager.main import app
from timesheet_manager.db.base import Base
from timesheet_manager.db.session import get_db
from timesheet_manager.core.security import AuthState, create_access_token
from timesheet_manager.models import (
    User,
    UserRole,
    AuthProvider,
    Project,
    SubProject,
    ProjectValidator,
    Timesheet,
    TimeEntry,
    TimesheetStatus,
)


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_savepoints(engine) -> None:
    """Let SQLAlchemy, not the driver, emit BEGIN so SAVEPOINT works on SQLite."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def test_session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
async def test_db_session(test_session_maker):
    """
    Create a test database session.
    Uses in-memory SQLite for fast tests.
    """
    async with test_session_maker() as session:
        yield session


async def _add_user(session, email, name, role=UserRole.USER, manager=None, **kwargs) -> User:
    user = User(
        email=email,
        name=name,
        role=role,
        manager_id=manager.id if manager else None,
        **kwargs,
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
def make_user(test_db_session):
    """Factory for extra users."""
    counter = {"n": 0}

    async def _make(role=UserRole.USER, manager=None, **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = await _add_user(
            test_db_session,
            f"user{n}@example.com",
            f"User {n}",
            role=role,
            manager=manager,
            **kwargs,
        )
        await test_db_session.commit()
        return user

    return _make


@pytest.fixture
async def admin(test_db_session) -> User:
    user = await _add_user(test_db_session, "admin@example.com", "Ada Admin", role=UserRole.ADMIN)
    await test_db_session.commit()
    return user


@pytest.fixture
async def manager(test_db_session) -> User:
    user = await _add_user(test_db_session, "manager@example.com", "Mona Manager", role=UserRole.VALIDATOR)
    await test_db_session.commit()
    return user


@pytest.fixture
async def validator(test_db_session) -> User:
    user = await _add_user(test_db_session, "validator@example.com", "Victor Validator", role=UserRole.VALIDATOR)
    await test_db_session.commit()
    return user


@pytest.fixture
async def owner(test_db_session, manager) -> User:
    user = await _add_user(test_db_session, "owner@example.com", "Olive Owner", manager=manager)
    await test_db_session.commit()
    return user


@pytest.fixture
async def project(test_db_session, validator) -> Project:
    """Billable project with one designated validator."""
    project = Project(name="Apollo", code="APO", is_billable=True)
    test_db_session.add(project)
    await test_db_session.flush()
    test_db_session.add(ProjectValidator(project_id=project.id, user_id=validator.id))
    await test_db_session.commit()
    return project


@pytest.fixture
async def sub_project(test_db_session, project) -> SubProject:
    sub_project = SubProject(project_id=project.id, name="Design")
    test_db_session.add(sub_project)
    await test_db_session.commit()
    return sub_project


@pytest.fixture
async def internal_project(test_db_session) -> Project:
    """Non-billable project with no validators."""
    project = Project(name="Internal", code="INT", is_billable=False)
    test_db_session.add(project)
    await test_db_session.commit()
    return project


def auth_headers(user: User, auth_state: AuthState = AuthState.SECOND_FACTOR_VERIFIED) -> dict:
    token = create_access_token(
        data={
            "sub": str(user.id),
            "role": user.role.value,
            "provider": (user.auth_provider or AuthProvider.CREDENTIALS).value,
            "auth_state": auth_state.value,
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
async def test_client(test_db_session):
    """
    Create a test HTTP client.
    Every request shares the test session; a failed request rolls it back.
    """

    async def override_get_db():
        try:
            yield test_db_session
        except Exception:
            await test_db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


WEEK = date(2024, 3, 4)  # a Monday


@pytest.fixture
def make_timesheet(test_db_session):
    """Factory for a timesheet with entries given as (project, minutes) pairs."""

    async def _make(owner, entries=(), week_start=WEEK, status=TimesheetStatus.DRAFT) -> Timesheet:
        timesheet = Timesheet(
            user_id=owner.id,
            week_start=week_start,
            week_end=week_start + timedelta(days=6),
            status=status,
            total_minutes=sum(minutes for _, minutes in entries),
        )
        test_db_session.add(timesheet)
        await test_db_session.flush()
        for i, (project, minutes) in enumerate(entries):
            test_db_session.add(
                TimeEntry(
                    user_id=owner.id,
                    project_id=project.id,
                    timesheet_id=timesheet.id,
                    date=week_start + timedelta(days=i % 7),
                    duration=minutes,
                    is_billable=project.is_billable,
                )
            )
        await test_db_session.commit()
        return timesheet

    return _make
