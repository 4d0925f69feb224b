from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from ..models import Base


def async_database_url(database_url: str) -> str:
    """Switch a plain SQLite URL to the aiosqlite driver."""
    return database_url.replace("sqlite:///", "sqlite+aiosqlite:///")


def create_engine_and_sessionmaker(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine and a matching session factory."""
    new_engine = create_async_engine(async_database_url(database_url), echo=echo)
    session_maker = async_sessionmaker(
        bind=new_engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    return new_engine, session_maker


engine, AsyncSessionLocal = create_engine_and_sessionmaker(
    settings.database_url, echo=settings.database_echo
)


async def init_db(target_engine: Optional[AsyncEngine] = None):
    """Create the schedule table if it does not exist yet."""
    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
