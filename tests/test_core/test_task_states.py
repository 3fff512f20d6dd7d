"""Tests for the task status state machine."""

from datetime import datetime, timedelta

import pytest

from reporter.core.exceptions import InvalidTransition
from reporter.models.task import (
    OVERDUE,
    Recurrence,
    ScheduledTask,
    TaskStatus,
    can_transition,
    ensure_transition,
)


class TestTransitions:
    """Tests for allowed status transitions."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (TaskStatus.SCHEDULED, TaskStatus.PROCESSING),
            (TaskStatus.PROCESSING, TaskStatus.SCHEDULED),
            (TaskStatus.PROCESSING, TaskStatus.COMPLETED),
            (TaskStatus.PROCESSING, TaskStatus.FAILED),
            (TaskStatus.FAILED, TaskStatus.SCHEDULED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target) is True
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (TaskStatus.SCHEDULED, TaskStatus.COMPLETED),
            (TaskStatus.SCHEDULED, TaskStatus.FAILED),
            (TaskStatus.PROCESSING, TaskStatus.PROCESSING),
            (TaskStatus.COMPLETED, TaskStatus.SCHEDULED),
            (TaskStatus.FAILED, TaskStatus.PROCESSING),
        ],
    )
    def test_rejected(self, current, target):
        assert can_transition(current, target) is False
        with pytest.raises(InvalidTransition) as exc_info:
            ensure_transition(current, target)

        assert exc_info.value.current == current.value
        assert exc_info.value.target == target.value

    def test_completed_is_terminal(self):
        """No status can follow completed."""
        assert not any(can_transition(TaskStatus.COMPLETED, s) for s in TaskStatus)


class TestDisplayStatus:
    """Tests for the derived overdue display state."""

    def _task(self, status: TaskStatus, scheduled_time: datetime) -> ScheduledTask:
        return ScheduledTask(
            name="Shift report",
            scheduled_time=scheduled_time,
            recurrence=Recurrence.DAILY,
            status=status,
        )

    def test_overdue_when_scheduled_in_past(self):
        now = datetime(2026, 3, 1, 12, 0)
        task = self._task(TaskStatus.SCHEDULED, now - timedelta(minutes=1))

        assert task.display_status(now) == OVERDUE
        assert task.status == TaskStatus.SCHEDULED

    def test_scheduled_in_future(self):
        now = datetime(2026, 3, 1, 12, 0)
        task = self._task(TaskStatus.SCHEDULED, now + timedelta(hours=1))

        assert task.display_status(now) == "scheduled"

    def test_other_states_never_overdue(self):
        now = datetime(2026, 3, 1, 12, 0)
        past = now - timedelta(days=1)

        assert self._task(TaskStatus.FAILED, past).display_status(now) == "failed"
        assert self._task(TaskStatus.PROCESSING, past).display_status(now) == "processing"
