"""Tests for recurring task rescheduling."""

from datetime import datetime, timedelta

import pytest

from reporter.models.task import Recurrence, TaskStatus
from reporter.services.rescheduler import next_run_time, reschedule

pytestmark = pytest.mark.asyncio

T = datetime(2026, 1, 31, 6, 0)


class TestNextRunTime:
    """Tests for next_run_time."""

    def test_none_has_no_next_time(self):
        assert next_run_time(T, Recurrence.NONE) is None

    def test_daily(self):
        assert next_run_time(T, Recurrence.DAILY) == T + timedelta(days=1)

    def test_weekly_is_strictly_after_and_deterministic(self):
        """Weekly reschedule should be seven days later, every time."""
        first = next_run_time(T, Recurrence.WEEKLY)
        second = next_run_time(T, Recurrence.WEEKLY)

        assert first == second == T + timedelta(days=7)
        assert first > T

    def test_monthly_clamps_to_month_end(self):
        assert next_run_time(T, Recurrence.MONTHLY) == datetime(2026, 2, 28, 6, 0)

    def test_skips_missed_periods(self):
        """With now given, missed periods collapse into one future run."""
        now = T + timedelta(days=3, hours=1)

        assert next_run_time(T, Recurrence.DAILY, now=now) == T + timedelta(days=4)

    def test_monthly_skip_keeps_anchor_day(self):
        """Stepping over February should return to day 31 in March."""
        now = datetime(2026, 3, 1)

        assert next_run_time(T, Recurrence.MONTHLY, now=now) == datetime(2026, 3, 31, 6, 0)

    def test_next_time_equal_to_now_is_skipped(self):
        now = T + timedelta(days=1)

        assert next_run_time(T, Recurrence.DAILY, now=now) == T + timedelta(days=2)


class TestReschedule:
    """Tests for reschedule."""

    async def test_recurring_task_is_rearmed(
        self, db_session, user_factory, template_factory, task_factory
    ):
        task = await task_factory(
            await user_factory(),
            await template_factory(),
            scheduled_time=T,
            recurrence=Recurrence.WEEKLY,
            status=TaskStatus.PROCESSING,
        )

        await reschedule(db_session, task, now=T + timedelta(minutes=2))

        assert task.status == TaskStatus.SCHEDULED
        assert task.scheduled_time == T + timedelta(days=7)

    async def test_one_off_task_completes(
        self, db_session, user_factory, template_factory, task_factory
    ):
        task = await task_factory(
            await user_factory(),
            await template_factory(),
            scheduled_time=T,
            recurrence=Recurrence.NONE,
            status=TaskStatus.PROCESSING,
        )

        await reschedule(db_session, task, now=T + timedelta(minutes=2))

        assert task.status == TaskStatus.COMPLETED
        assert task.scheduled_time == T
