"""Durable task store operations.

Functions flush but never commit; the caller owns the transaction.
"""

import uuid
from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reporter.core.datetime_utils import utc_now
from reporter.core.logging import get_logger
from reporter.models.task import Recurrence, ScheduledTask, TaskStatus, ensure_transition

logger = get_logger(__name__)


async def list_due_tasks(db: AsyncSession, now: datetime | None = None) -> list[ScheduledTask]:
    """Get tasks whose scheduled time has elapsed and that are waiting to run.

    Tasks already processing are skipped, as are terminal failed/completed
    tasks. Ordered by scheduled time, but callers must not depend on it.

    Args:
        db: Database session
        now: Reference time (defaults to utc_now())

    Returns:
        List of due tasks
    """
    now = now or utc_now()
    result = await db.execute(
        select(ScheduledTask)
        .where(
            and_(
                ScheduledTask.scheduled_time <= now,
                ScheduledTask.status == TaskStatus.SCHEDULED,
            )
        )
        .order_by(ScheduledTask.scheduled_time)
    )
    return list(result.scalars().all())


async def get_task(db: AsyncSession, task_id: uuid.UUID) -> ScheduledTask | None:
    return await db.get(ScheduledTask, task_id)


async def list_tasks(
    db: AsyncSession,
    user_id: uuid.UUID | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[ScheduledTask]:
    """List tasks by scheduled time, optionally for a single user."""
    query = select(ScheduledTask).order_by(ScheduledTask.scheduled_time)
    if user_id:
        query = query.where(ScheduledTask.user_id == user_id)
    result = await db.execute(query.offset(offset).limit(limit))
    return list(result.scalars().all())


async def create_task(
    db: AsyncSession,
    name: str,
    template_id: uuid.UUID,
    user_id: uuid.UUID,
    scheduled_time: datetime,
    recurrence: Recurrence = Recurrence.NONE,
    entity_ids: list[str] | None = None,
) -> ScheduledTask:
    """Create a new task in the scheduled state."""
    task = ScheduledTask(
        name=name,
        template_id=template_id,
        user_id=user_id,
        scheduled_time=scheduled_time,
        recurrence=recurrence,
        status=TaskStatus.SCHEDULED,
        entity_ids=entity_ids,
    )
    db.add(task)
    await db.flush()

    logger.bind(
        task_id=str(task.id),
        name=name,
        scheduled_time=scheduled_time.isoformat(),
        recurrence=recurrence.value,
    ).info("task_scheduled")
    return task


async def claim_task(db: AsyncSession, task: ScheduledTask) -> bool:
    """
    Atomically move a scheduled task to processing.

    The update only matches while the row is still scheduled, so two
    overlapping invocations cannot both claim the same task.

    Returns:
        True if this call claimed the task
    """
    ensure_transition(task.status, TaskStatus.PROCESSING)

    result = await db.execute(
        update(ScheduledTask)
        .where(
            and_(
                ScheduledTask.id == task.id,
                ScheduledTask.status == TaskStatus.SCHEDULED,
            )
        )
        .values(status=TaskStatus.PROCESSING, last_run_at=utc_now())
    )
    if result.rowcount != 1:
        logger.bind(task_id=str(task.id)).warning("task_claim_lost")
        return False

    await db.refresh(task)
    return True


async def set_task_status(
    db: AsyncSession,
    task: ScheduledTask,
    status: TaskStatus,
    error: str | None = None,
) -> ScheduledTask:
    """
    Move a task to a new status, enforcing the state machine.

    Args:
        db: Database session
        task: Task to update
        status: Target status
        error: Failure description, stored in last_error for FAILED

    Raises:
        InvalidTransition: If the change is not allowed
    """
    ensure_transition(task.status, status)

    task.status = status
    if status == TaskStatus.PROCESSING:
        task.last_run_at = utc_now()
    if status == TaskStatus.FAILED:
        task.last_error = error
    elif status == TaskStatus.COMPLETED:
        task.last_error = None

    await db.flush()
    return task


async def reschedule_task(
    db: AsyncSession,
    task: ScheduledTask,
    next_time: datetime,
    recurrence: Recurrence | None = None,
) -> ScheduledTask:
    """Re-arm a task for next_time, optionally changing its recurrence."""
    ensure_transition(task.status, TaskStatus.SCHEDULED)

    task.scheduled_time = next_time
    task.status = TaskStatus.SCHEDULED
    task.last_error = None
    if recurrence is not None:
        task.recurrence = recurrence

    await db.flush()
    return task
