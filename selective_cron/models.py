from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import TEXT, DateTime, Index, String
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class TZDatetime(TypeDecorator):
    """DateTime type that stores UTC and always returns timezone-aware datetimes."""

    impl = DateTime(timezone=True)

    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError(
                "Naive datetime is not allowed. Please provide a timezone-aware datetime."
            )
        # SQLite drops the offset, so everything is normalised to UTC before storage
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(AsyncAttrs, DeclarativeBase):
    """SQLAlchemy declarative base for all ORM models with async support."""

    pass


class ScheduleStatus(str, Enum):
    """Status of one schedule entry."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    # Declared for completeness; no code path assigns it
    MISSED = "missed"
    ERROR = "error"


class Schedule(Base):
    """Schedule table: one row per planned execution of a selected job."""

    __tablename__ = "selective_cron_schedule"

    schedule_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_code: Mapped[str] = mapped_column(String(255), index=True)
    status: Mapped[ScheduleStatus] = mapped_column(
        SQLAlchemyEnum(
            ScheduleStatus,
            values_callable=lambda enum: [member.value for member in enum],
            native_enum=False,
            length=16,
        ),
        default=ScheduleStatus.PENDING,
        index=True,
    )
    scheduled_at: Mapped[datetime] = mapped_column(TZDatetime())
    created_at: Mapped[datetime] = mapped_column(
        TZDatetime(), default=lambda: datetime.now(timezone.utc)
    )
    executed_at: Mapped[Optional[datetime]] = mapped_column(TZDatetime())
    finished_at: Mapped[Optional[datetime]] = mapped_column(TZDatetime())
    messages: Mapped[Optional[str]] = mapped_column(TEXT)

    __table_args__ = (
        Index("ix_selective_cron_schedule_job_scheduled", "job_code", "scheduled_at"),
    )
