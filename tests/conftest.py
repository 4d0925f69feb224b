"""
Shared fixtures: a temporary SQLite database per test and a controllable clock.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from selective_cron.cron.registry import JobRegistry
from selective_cron.cron.store import ScheduleStore
from selective_cron.models import Base


class FrozenClock:
    """Clock returning a fixed instant until moved forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
async def session_maker():
    """Create a test database with temporary file."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".db") as tmp_file:
        db_path = tmp_file.name

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    yield maker

    await engine.dispose()
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def store(session_maker) -> ScheduleStore:
    return ScheduleStore(session_maker)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 1, 3, 1, tzinfo=timezone.utc))


@pytest.fixture
def registry() -> JobRegistry:
    """Registry isolated from the global one, with a call log per job."""
    test_registry = JobRegistry()
    test_registry.calls = []  # type: ignore[attr-defined]

    @test_registry.register(job_code="every_minute", schedule="* * * * *")
    async def every_minute():
        test_registry.calls.append("every_minute")  # type: ignore[attr-defined]

    @test_registry.register(job_code="nightly_report", schedule="0 3 * * *")
    def nightly_report():
        test_registry.calls.append("nightly_report")  # type: ignore[attr-defined]

    @test_registry.register(job_code="quarter_hourly", config_path="jobs/quarter_hourly/cron")
    async def quarter_hourly():
        test_registry.calls.append("quarter_hourly")  # type: ignore[attr-defined]

    return test_registry
