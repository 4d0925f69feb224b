"""
Test populating and advancing the schedule table.
"""

import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from selective_cron.cron.config import SelectiveCronConfig
from selective_cron.cron.scheduler import Scheduler
from selective_cron.cron.types import JobDefinition
from selective_cron.models import ScheduleStatus

NOW = datetime(2024, 1, 1, 3, 1, tzinfo=timezone.utc)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_scheduler(
    store,
    registry,
    clock,
    enabled=True,
    selected=("every_minute", "nightly_report"),
    values=None,
    **kwargs,
):
    config = SelectiveCronConfig(
        enabled=enabled, selected_jobs=list(selected), values=values or {}
    )
    return Scheduler(store, registry, config, clock=clock, **kwargs)


async def scheduled_times(store, job_code):
    return [entry.scheduled_at for entry in await store.get(job_code=job_code)]


class TestPopulate:
    async def test_schedules_next_run_of_selected_jobs(self, store, registry, clock):
        scheduler = make_scheduler(store, registry, clock)

        report = await scheduler.populate()

        assert report.scheduled == 2
        assert report.skipped == 1
        assert report.failed == 0
        assert await scheduled_times(store, "every_minute") == [utc(2024, 1, 1, 3, 2)]
        assert await scheduled_times(store, "nightly_report") == [utc(2024, 1, 2, 3, 0)]
        assert await scheduled_times(store, "quarter_hourly") == []

        entries = await store.get()
        assert all(entry.status == ScheduleStatus.PENDING for entry in entries)
        assert all(entry.created_at == NOW for entry in entries)

    async def test_populate_twice_creates_no_duplicates(self, store, registry, clock):
        scheduler = make_scheduler(store, registry, clock)

        await scheduler.populate()
        report = await scheduler.populate()

        assert report.scheduled == 0
        entries = await store.get()
        pairs = [(entry.job_code, entry.scheduled_at) for entry in entries]
        assert len(pairs) == 2
        assert len(set(pairs)) == len(pairs)

    async def test_disabled_does_nothing(self, store, registry, clock):
        scheduler = make_scheduler(store, registry, clock, enabled=False)

        report = await scheduler.populate()

        assert (report.scheduled, report.skipped, report.failed) == (0, 0, 0)
        assert await store.get() == []

    async def test_nothing_selected_does_nothing(self, store, registry, clock):
        scheduler = make_scheduler(store, registry, clock, selected=())

        await scheduler.populate()

        assert await store.get() == []

    async def test_expression_from_config_path(self, store, registry, clock):
        scheduler = make_scheduler(
            store,
            registry,
            clock,
            selected=("quarter_hourly",),
            values={"jobs/quarter_hourly/cron": "*/15 * * * *"},
        )

        await scheduler.populate()

        assert await scheduled_times(store, "quarter_hourly") == [utc(2024, 1, 1, 3, 15)]

    async def test_missing_config_value_uses_default_expression(
        self, store, registry, clock, caplog
    ):
        scheduler = make_scheduler(store, registry, clock, selected=("quarter_hourly",))

        with caplog.at_level(logging.WARNING):
            await scheduler.populate()

        assert await scheduled_times(store, "quarter_hourly") == [utc(2024, 1, 1, 3, 2)]
        assert "jobs/quarter_hourly/cron" in caplog.text

    async def test_job_without_schedule_uses_default_expression(self, store, registry, clock):
        registry.add(JobDefinition(job_code="plain", handler=lambda: None))
        config = SelectiveCronConfig(
            enabled=True, selected_jobs=["plain"], default_cron_expression="0 * * * *"
        )
        scheduler = Scheduler(store, registry, config, clock=clock)

        await scheduler.populate()

        assert await scheduled_times(store, "plain") == [utc(2024, 1, 1, 4, 0)]

    async def test_invalid_expression_does_not_stop_other_jobs(
        self, store, registry, clock, caplog
    ):
        registry.add(JobDefinition(job_code="broken", handler=lambda: None, schedule="nope"))
        scheduler = make_scheduler(
            store, registry, clock, selected=("broken", "every_minute")
        )

        with caplog.at_level(logging.ERROR):
            report = await scheduler.populate()

        assert report.failed == 1
        assert report.scheduled == 1
        assert "Error scheduling job broken" in caplog.text
        assert await scheduled_times(store, "every_minute") == [utc(2024, 1, 1, 3, 2)]

    async def test_unregistered_selected_job_is_reported(
        self, store, registry, clock, caplog
    ):
        scheduler = make_scheduler(store, registry, clock, selected=("ghost", "every_minute"))

        with caplog.at_level(logging.WARNING):
            report = await scheduler.populate()

        assert report.scheduled == 1
        assert "Selected job ghost is not registered" in caplog.text

    async def test_configured_timezone(self, store, registry, clock):
        scheduler = make_scheduler(
            store,
            registry,
            clock,
            selected=("nightly_report",),
            tz=ZoneInfo("Europe/Paris"),
        )

        await scheduler.populate()

        # 03:00 in Paris during winter is 02:00 UTC
        assert await scheduled_times(store, "nightly_report") == [utc(2024, 1, 2, 2, 0)]


class TestReset:
    async def test_reset_replaces_existing_entries(self, store, registry, clock):
        await store.insert("old_job", utc(2023, 12, 31, 0, 0))
        await store.insert("every_minute", utc(2023, 12, 31, 0, 0))
        scheduler = make_scheduler(store, registry, clock)

        report = await scheduler.reset()

        assert report.scheduled == 2
        entries = await store.get()
        assert {(e.job_code, e.scheduled_at) for e in entries} == {
            ("every_minute", utc(2024, 1, 1, 3, 2)),
            ("nightly_report", utc(2024, 1, 2, 3, 0)),
        }

    async def test_reset_when_disabled_only_truncates(self, store, registry, clock):
        await store.insert("every_minute", utc(2023, 12, 31, 0, 0))
        scheduler = make_scheduler(store, registry, clock, enabled=False)

        await scheduler.reset()

        assert await store.get() == []


class TestAdvance:
    async def test_chains_from_last_entry(self, store, registry, clock):
        await store.insert("every_minute", utc(2024, 1, 1, 3, 5))
        scheduler = make_scheduler(store, registry, clock, selected=("every_minute",))

        report = await scheduler.advance()

        assert report.scheduled == 1
        assert await scheduled_times(store, "every_minute") == [
            utc(2024, 1, 1, 3, 5),
            utc(2024, 1, 1, 3, 6),
        ]

    async def test_without_entries_schedules_from_now(self, store, registry, clock):
        scheduler = make_scheduler(store, registry, clock, selected=("every_minute",))

        await scheduler.advance()

        assert await scheduled_times(store, "every_minute") == [utc(2024, 1, 1, 3, 2)]

    async def test_repeated_calls_keep_a_regular_cadence(self, store, registry, clock):
        scheduler = make_scheduler(store, registry, clock, selected=("every_minute",))

        for _ in range(3):
            await scheduler.advance()

        assert await scheduled_times(store, "every_minute") == [
            utc(2024, 1, 1, 3, 2),
            utc(2024, 1, 1, 3, 3),
            utc(2024, 1, 1, 3, 4),
        ]

    async def test_pending_entry_beyond_horizon_is_enough(self, store, registry, clock):
        await store.insert("every_minute", utc(2024, 1, 1, 4, 1))
        scheduler = make_scheduler(store, registry, clock, selected=("every_minute",))

        report = await scheduler.advance()

        assert report.skipped == 1
        assert report.scheduled == 0
        assert await scheduled_times(store, "every_minute") == [utc(2024, 1, 1, 4, 1)]

    async def test_candidate_in_the_past_is_scheduled(self, store, registry, clock):
        done = await store.insert("every_minute", utc(2024, 1, 1, 2, 0))
        await store.attempt_transition(
            done.schedule_id, ScheduleStatus.PENDING, ScheduleStatus.SUCCESS
        )
        scheduler = make_scheduler(store, registry, clock, selected=("every_minute",))

        await scheduler.advance()

        assert await scheduled_times(store, "every_minute") == [
            utc(2024, 1, 1, 2, 0),
            utc(2024, 1, 1, 2, 1),
        ]

    async def test_candidate_beyond_horizon_is_skipped(self, store, registry, clock):
        done = await store.insert("nightly_report", utc(2024, 1, 1, 3, 0))
        await store.attempt_transition(
            done.schedule_id, ScheduleStatus.PENDING, ScheduleStatus.SUCCESS
        )
        scheduler = make_scheduler(store, registry, clock, selected=("nightly_report",))

        report = await scheduler.advance()

        assert report.skipped == 1
        assert report.scheduled == 0
        assert await scheduled_times(store, "nightly_report") == [utc(2024, 1, 1, 3, 0)]

    async def test_custom_horizon(self, store, registry, clock):
        await store.insert("every_minute", utc(2024, 1, 1, 3, 10))
        scheduler = make_scheduler(
            store,
            registry,
            clock,
            selected=("every_minute",),
            horizon=timedelta(minutes=5),
        )

        report = await scheduler.advance()

        assert report.skipped == 1

    async def test_duplicates_are_cleaned_up_first(self, store, registry, clock):
        await store.insert("every_minute", utc(2024, 1, 1, 3, 30), created_at=NOW)
        await store.insert(
            "every_minute", utc(2024, 1, 1, 3, 30), created_at=NOW + timedelta(seconds=1)
        )
        scheduler = make_scheduler(store, registry, clock, selected=("every_minute",))

        await scheduler.advance()

        assert await scheduled_times(store, "every_minute") == [
            utc(2024, 1, 1, 3, 30),
            utc(2024, 1, 1, 3, 31),
        ]

    async def test_disabled_does_nothing(self, store, registry, clock):
        await store.insert("every_minute", utc(2024, 1, 1, 3, 30))
        await store.insert("every_minute", utc(2024, 1, 1, 3, 30))
        scheduler = make_scheduler(store, registry, clock, enabled=False)

        report = await scheduler.advance()

        assert (report.scheduled, report.skipped, report.failed) == (0, 0, 0)
        assert len(await store.get()) == 2


class TestJobsBeyondSearchWindow:
    async def test_weekly_job_is_not_scheduled_before_its_day(self, store, registry, clock):
        registry.add(JobDefinition(job_code="weekly", handler=lambda: None, schedule="0 3 * * 1"))
        # Wednesday, next Monday 03:00 is days away
        clock.now = datetime(2024, 1, 3, 10, 0, 30, tzinfo=timezone.utc)
        scheduler = make_scheduler(store, registry, clock, selected=("weekly",))

        for _ in range(3):
            report = await scheduler.populate()
            clock.advance(minutes=1)

            assert report.scheduled == 0
            assert report.failed == 0
        assert await store.get() == []

    async def test_advance_does_not_schedule_outside_the_window(self, store, registry, clock):
        registry.add(JobDefinition(job_code="weekly", handler=lambda: None, schedule="0 3 * * 1"))
        clock.now = datetime(2024, 1, 3, 10, 0, 30, tzinfo=timezone.utc)
        scheduler = make_scheduler(store, registry, clock, selected=("weekly",))

        report = await scheduler.advance()

        assert report.scheduled == 0
        assert report.skipped == 1
        assert await store.get() == []

    async def test_weekly_job_is_scheduled_once_in_range(self, store, registry, clock):
        registry.add(JobDefinition(job_code="weekly", handler=lambda: None, schedule="0 3 * * 1"))
        # Sunday evening
        clock.now = datetime(2024, 1, 7, 22, 0, 30, tzinfo=timezone.utc)
        scheduler = make_scheduler(store, registry, clock, selected=("weekly",))

        await scheduler.populate()
        await scheduler.populate()

        assert await scheduled_times(store, "weekly") == [utc(2024, 1, 8, 3, 0)]
