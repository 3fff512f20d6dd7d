"""
APScheduler integration for FastAPI.

Runs the due-task sweep in-process on a fixed interval. Each tick opens its
own session and records its outcome in job_runs.
"""

from datetime import datetime
from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy, JobOutcome, JobReleased
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.interval import IntervalTrigger

from reporter.config import get_settings
from reporter.core.database import AsyncSessionLocal
from reporter.core.datetime_utils import utc_now
from reporter.core.logging import get_logger

logger = get_logger(__name__)

RUN_DUE_TASKS_JOB_ID = "run_due_tasks"

# Global scheduler instance
scheduler: AsyncScheduler | None = None


async def run_due_tasks_job() -> None:
    """Process all due report tasks."""
    # Import here to avoid circular imports
    from reporter.services.task_runner import run_due_tasks

    logger.debug("scheduled_run_due_tasks_started")
    async with AsyncSessionLocal() as db:
        try:
            result = await run_due_tasks(db)
        except Exception as e:
            logger.bind(error=str(e)).error("scheduled_run_due_tasks_failed")
            raise  # Re-raise so APScheduler records the failure

    if result.processed_count or result.errors:
        logger.bind(
            processed=result.processed_count,
            errors=len(result.errors),
        ).info("scheduled_run_due_tasks_completed")


async def _record_job_result(
    job_id: str,
    scheduled_at: datetime,
    started_at: datetime,
    outcome: JobOutcome,
    error: str | None = None,
) -> None:
    """Record job execution result to database."""
    from reporter.models.job_run import JobRun

    async with AsyncSessionLocal() as db:
        job_run = JobRun(
            job_id=job_id,
            scheduled_at=scheduled_at,
            started_at=started_at,
            finished_at=utc_now(),
            outcome=outcome.name,
            error=error,
        )
        db.add(job_run)
        await db.commit()


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    # Schedules live in memory; the durable state is the task table itself
    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    # Subscribe to job events for history tracking
    scheduler.subscribe(_on_job_completed)

    await scheduler.add_schedule(
        run_due_tasks_job,
        IntervalTrigger(minutes=settings.scheduler_interval_minutes),
        id=RUN_DUE_TASKS_JOB_ID,
        conflict_policy=ConflictPolicy.replace,
    )

    # Start the scheduler's background worker to actually process jobs
    await scheduler.start_in_background()

    logger.bind(
        jobs=[RUN_DUE_TASKS_JOB_ID],
        interval_minutes=settings.scheduler_interval_minutes,
    ).info("scheduler_started")

    return scheduler


async def _on_job_completed(event: Any) -> None:
    """Handle job completion events."""
    if isinstance(event, JobReleased):
        try:
            scheduled_at = getattr(event, "scheduled_fire_time", None) or utc_now()
            started_at = getattr(event, "started_at", None) or utc_now()
            exception = getattr(event, "exception", None)
            await _record_job_result(
                job_id=event.schedule_id or "unknown",
                scheduled_at=scheduled_at.replace(tzinfo=None),
                started_at=started_at.replace(tzinfo=None),
                outcome=event.outcome,
                error=str(exception) if event.outcome == JobOutcome.error and exception else None,
            )
        except Exception as e:
            logger.bind(error=str(e)).error("failed_to_record_job_result")


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None


async def get_job_schedules() -> list[dict[str, Any]]:
    """Get all registered job schedules."""
    if not scheduler:
        return []

    schedules = await scheduler.get_schedules()
    return [
        {
            "id": s.id,
            "task_id": s.task_id,
            "trigger": str(s.trigger),
            "next_fire_time": s.next_fire_time.isoformat() if s.next_fire_time else None,
            "last_fire_time": s.last_fire_time.isoformat() if s.last_fire_time else None,
        }
        for s in schedules
    ]
