"""
Schedule Store - persistence of schedule entries.

Only ``attempt_transition`` is safe under concurrent callers: it is a single
conditional UPDATE that changes a row only while it still has the expected
status. Every other operation is read-then-act.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Schedule, ScheduleStatus
from .errors import PersistenceError
from .types import ScheduleEntry

logger = logging.getLogger(__name__)

# Columns that may be written together with a status transition
TRANSITION_COLUMNS = frozenset({"executed_at", "finished_at", "messages"})

ABANDONED_MESSAGE = "Execution was abandoned while running and has been marked as failed"


def _to_entry(row: Schedule) -> ScheduleEntry:
    return ScheduleEntry(
        schedule_id=row.schedule_id,
        job_code=row.job_code,
        status=ScheduleStatus(row.status),
        scheduled_at=row.scheduled_at,
        created_at=row.created_at,
        executed_at=row.executed_at,
        finished_at=row.finished_at,
        messages=row.messages,
    )


class ScheduleStore:
    """
    Repository for the selective cron schedule table.

    All methods raise PersistenceError when the database operation fails.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_factory is None:
            from ..db.database import AsyncSessionLocal

            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to {action}: {e}") from e

    async def insert(
        self,
        job_code: str,
        scheduled_at: datetime,
        created_at: Optional[datetime] = None,
        status: ScheduleStatus = ScheduleStatus.PENDING,
    ) -> ScheduleEntry:
        """
        Insert a new schedule entry.

        Args:
            job_code: Job code of the entry
            scheduled_at: When the entry is due
            created_at: Insertion time (defaults to now)
            status: Initial status

        Returns:
            The stored entry with its assigned schedule_id
        """
        async with self._session(f"insert schedule entry for {job_code}") as session:
            row = Schedule(
                job_code=job_code,
                status=status,
                scheduled_at=scheduled_at,
                created_at=created_at or datetime.now(timezone.utc),
            )
            session.add(row)
            await session.flush()
            entry = _to_entry(row)
            await session.commit()
            return entry

    async def get(
        self,
        job_code: Optional[str] = None,
        status: Optional[ScheduleStatus] = None,
        due_before: Optional[datetime] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[ScheduleEntry]:
        """
        Get schedule entries ordered by scheduled_at.

        Args:
            job_code: Only entries of this job
            status: Only entries with this status
            due_before: Only entries scheduled at or before this instant
            descending: Latest first instead of earliest first
            limit: Maximum number of entries to return

        Returns:
            List of ScheduleEntry records
        """
        query = select(Schedule)
        if job_code is not None:
            query = query.where(Schedule.job_code == job_code)
        if status is not None:
            query = query.where(Schedule.status == status)
        if due_before is not None:
            query = query.where(Schedule.scheduled_at <= due_before)

        if descending:
            query = query.order_by(
                Schedule.scheduled_at.desc(), Schedule.schedule_id.desc()
            )
        else:
            query = query.order_by(Schedule.scheduled_at.asc(), Schedule.schedule_id.asc())

        if limit is not None:
            query = query.limit(limit)

        async with self._session("read schedule entries") as session:
            result = await session.execute(query)
            return [_to_entry(row) for row in result.scalars().all()]

    async def get_entry(self, schedule_id: int) -> Optional[ScheduleEntry]:
        async with self._session(f"read schedule entry {schedule_id}") as session:
            row = await session.get(Schedule, schedule_id)
            return _to_entry(row) if row else None

    async def last_entry(
        self, job_code: str, status: Optional[ScheduleStatus] = None
    ) -> Optional[ScheduleEntry]:
        """Get the entry of a job with the latest scheduled_at, optionally by status."""
        entries = await self.get(
            job_code=job_code, status=status, descending=True, limit=1
        )
        return entries[0] if entries else None

    async def truncate(self) -> int:
        """Delete every schedule entry. Returns the number of deleted rows."""
        async with self._session("truncate schedule table") as session:
            result = await session.execute(delete(Schedule))
            await session.commit()
            return result.rowcount

    async def attempt_transition(
        self,
        schedule_id: int,
        from_status: ScheduleStatus,
        to_status: ScheduleStatus,
        **values,
    ) -> bool:
        """
        Atomically move an entry from one status to another.

        The row is only updated while its status is still ``from_status``, so
        of several concurrent callers at most one succeeds.

        Args:
            schedule_id: Entry to update
            from_status: Status the entry must currently have
            to_status: New status
            **values: executed_at, finished_at or messages to write alongside

        Returns:
            True if exactly one row changed
        """
        unknown = set(values) - TRANSITION_COLUMNS
        if unknown:
            raise ValueError(f"Cannot set {sorted(unknown)} during a status transition")

        stmt = (
            update(Schedule)
            .where(Schedule.schedule_id == schedule_id, Schedule.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        async with self._session(
            f"move schedule entry {schedule_id} from {from_status.value} to {to_status.value}"
        ) as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def exists_at(self, job_code: str, scheduled_at: datetime) -> bool:
        """Check whether an entry of the job is already scheduled at this instant."""
        query = (
            select(Schedule.schedule_id)
            .where(Schedule.job_code == job_code, Schedule.scheduled_at == scheduled_at)
            .limit(1)
        )
        async with self._session(f"check schedule of {job_code}") as session:
            result = await session.execute(query)
            return result.scalar_one_or_none() is not None

    async def delete_duplicates(self) -> int:
        """
        Remove duplicate entries sharing the same job code and scheduled time.

        Of each group the entry created first is kept.

        Returns:
            Number of deleted entries
        """
        async with self._session("clean up duplicate schedule entries") as session:
            result = await session.execute(
                select(Schedule.job_code, Schedule.scheduled_at)
                .group_by(Schedule.job_code, Schedule.scheduled_at)
                .having(func.count() > 1)
            )
            duplicates = result.all()

            removed = 0
            for job_code, scheduled_at in duplicates:
                result = await session.execute(
                    select(Schedule.schedule_id)
                    .where(
                        Schedule.job_code == job_code,
                        Schedule.scheduled_at == scheduled_at,
                    )
                    .order_by(Schedule.created_at.asc(), Schedule.schedule_id.asc())
                )
                delete_ids = list(result.scalars().all())[1:]
                if not delete_ids:
                    continue

                await session.execute(
                    delete(Schedule).where(Schedule.schedule_id.in_(delete_ids))
                )
                removed += len(delete_ids)
                logger.info(
                    f"Removed {len(delete_ids)} duplicate entries for job {job_code} "
                    f"scheduled at {scheduled_at.isoformat()}"
                )

            await session.commit()
            return removed

    async def sweep_running(
        self,
        job_code: str,
        exclude_id: Optional[int] = None,
        finished_at: Optional[datetime] = None,
    ) -> int:
        """
        Mark every running entry of a job as failed.

        Used right before claiming a new entry of the same job: anything still
        running at that point is considered abandoned.

        Args:
            job_code: Job whose running entries are swept
            exclude_id: Entry to leave untouched
            finished_at: Completion time written to swept entries (defaults to now)

        Returns:
            Number of entries moved to error
        """
        stmt = update(Schedule).where(
            Schedule.job_code == job_code, Schedule.status == ScheduleStatus.RUNNING
        )
        if exclude_id is not None:
            stmt = stmt.where(Schedule.schedule_id != exclude_id)
        stmt = stmt.values(
            status=ScheduleStatus.ERROR,
            finished_at=finished_at or datetime.now(timezone.utc),
            messages=ABANDONED_MESSAGE,
        ).execution_options(synchronize_session=False)

        async with self._session(f"sweep running entries of {job_code}") as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount
