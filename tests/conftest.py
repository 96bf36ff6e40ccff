"""Pytest fixtures for timesheet engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from timesheet_engine.config import Settings
from timesheet_engine.database import make_session_factory
from timesheet_engine.events import AsyncEventEmitter
from timesheet_engine.models import Base
from timesheet_engine.notifications import LoggingMailer, NotificationDispatcher
from timesheet_engine.services.repository import TimesheetRepository
from timesheet_engine.services.timesheet_service import TimesheetService

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday morning
FIXED_NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable wall clock for service tests."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current += timedelta(**delta)
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment


@pytest.fixture
def settings() -> Settings:
    """Settings pinned to UTC with a generous rate limit."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="WARNING",
        business_timezone="UTC",
        history_days=90,
        resend_api_key=None,
        from_email="timesheets@example.com",
        frontend_url="https://app.example.com",
        rate_limit_requests=100,
        rate_limit_window=60,
        invitation_ttl_days=7,
    )


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> LoggingMailer:
    return LoggingMailer()


@pytest.fixture
def emitter(mailer, settings) -> AsyncEventEmitter:
    emitter = AsyncEventEmitter()
    NotificationDispatcher(mailer, settings.frontend_url).register(emitter)
    return emitter


@pytest.fixture
def repository(session, tenant_id) -> TimesheetRepository:
    return TimesheetRepository(session, tenant_id)


@pytest.fixture
def service(repository, emitter, clock, settings) -> TimesheetService:
    return TimesheetService(repository, emitter, clock=clock, settings=settings)


@pytest.fixture
async def worker(service):
    """An hourly team member with an email address."""
    result = await service.add_employee(
        "Dana Fox",
        email="dana@example.com",
        role="Barista",
        hourly_rate=Decimal("20.00"),
    )
    return result.value


@pytest.fixture
async def admin(service):
    result = await service.add_employee(
        "Olive Owner", email="owner@example.com", role="Owner", is_admin=True
    )
    return result.value
