"""Re-arm recurring tasks after a successful run."""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from reporter.core.datetime_utils import add_months
from reporter.core.logging import get_logger
from reporter.models.task import Recurrence, ScheduledTask, TaskStatus
from reporter.services.task_store import reschedule_task, set_task_status

logger = get_logger(__name__)


def _step(value: datetime, recurrence: Recurrence, periods: int) -> datetime:
    if recurrence == Recurrence.DAILY:
        return value + timedelta(days=periods)
    if recurrence == Recurrence.WEEKLY:
        return value + timedelta(weeks=periods)
    # Monthly steps are computed from the anchor so day 31 stays day 31
    # in months long enough for it.
    return add_months(value, periods)


def next_run_time(
    scheduled_time: datetime,
    recurrence: Recurrence,
    now: datetime | None = None,
) -> datetime | None:
    """
    Compute the next due time for a recurring task.

    The result is always strictly after scheduled_time. When now is given,
    missed periods are skipped so the result is also strictly after now;
    a task that was offline for a week runs once, not seven times.

    Args:
        scheduled_time: The due time that was just processed
        recurrence: Recurrence policy
        now: Optional reference time for skipping missed periods

    Returns:
        Next due time, or None for non-recurring tasks
    """
    if recurrence == Recurrence.NONE:
        return None

    periods = 1
    candidate = _step(scheduled_time, recurrence, periods)
    while now is not None and candidate <= now:
        periods += 1
        candidate = _step(scheduled_time, recurrence, periods)
    return candidate


async def reschedule(db: AsyncSession, task: ScheduledTask, now: datetime | None = None) -> None:
    """Re-arm a successfully processed task, or complete it if it does not recur."""
    next_time = next_run_time(task.scheduled_time, task.recurrence, now)

    if next_time is None:
        await set_task_status(db, task, TaskStatus.COMPLETED)
        logger.bind(task_id=str(task.id)).info("task_completed")
        return

    await reschedule_task(db, task, next_time)
    logger.bind(
        task_id=str(task.id),
        recurrence=task.recurrence.value,
        next_time=next_time.isoformat(),
    ).info("task_rescheduled")
