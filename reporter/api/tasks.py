"""Scheduled task API endpoints."""

import uuid
from datetime import UTC

from fastapi import APIRouter, HTTPException, Query, status

from reporter.core.datetime_utils import utc_now
from reporter.core.exceptions import InvalidTransition
from reporter.core.logging import get_logger
from reporter.dependencies import DBSession, TriggerAuth
from reporter.models.task import ScheduledTask
from reporter.schemas.task import RunResponse, TaskCreate, TaskResponse
from reporter.services.profile_store import get_template, get_user
from reporter.services.task_runner import run_due_tasks
from reporter.services.task_store import create_task, get_task, list_tasks, reschedule_task

logger = get_logger(__name__)

router = APIRouter()


def _to_response(task: ScheduledTask) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        name=task.name,
        template_id=task.template_id,
        user_id=task.user_id,
        scheduled_time=task.scheduled_time,
        recurrence=task.recurrence.value,
        status=task.status.value,
        display_status=task.display_status(utc_now()),
        last_error=task.last_error,
        last_run_at=task.last_run_at,
    )


@router.post("/tasks/run", response_model=RunResponse)
async def trigger_run(db: DBSession, _: TriggerAuth) -> RunResponse:
    """
    Process all due tasks now.

    Intended for an external scheduler (cron, cloud scheduler). When
    TRIGGER_TOKEN is set, the X-Trigger-Token header must match it.
    """
    result = await run_due_tasks(db)
    return RunResponse(
        success=result.success,
        processed_count=result.processed_count,
        errors=result.errors,
    )


@router.get("/tasks", response_model=list[TaskResponse])
async def get_tasks(
    db: DBSession,
    user_id: uuid.UUID | None = Query(default=None, description="Filter by owner"),
    limit: int = Query(default=100, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[TaskResponse]:
    """
    List scheduled tasks.

    display_status is "overdue" for scheduled tasks whose time has passed.
    """
    tasks = await list_tasks(db, user_id=user_id, limit=limit, offset=offset)
    return [_to_response(task) for task in tasks]


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def schedule_task(body: TaskCreate, db: DBSession) -> TaskResponse:
    """Schedule a new report task."""
    if not await get_user(db, body.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not await get_template(db, body.template_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")

    scheduled_time = body.scheduled_time
    if scheduled_time.tzinfo is not None:
        scheduled_time = scheduled_time.astimezone(UTC).replace(tzinfo=None)

    task = await create_task(
        db,
        name=body.name,
        template_id=body.template_id,
        user_id=body.user_id,
        scheduled_time=scheduled_time,
        recurrence=body.recurrence,
        entity_ids=body.entity_ids,
    )
    await db.commit()
    return _to_response(task)


@router.post("/tasks/{task_id}/retry", response_model=TaskResponse)
async def retry_task(task_id: uuid.UUID, db: DBSession) -> TaskResponse:
    """
    Re-arm a failed task so the next run picks it up.

    Only failed tasks can be retried.
    """
    task = await get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    try:
        await reschedule_task(db, task, utc_now())
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    await db.commit()
    logger.bind(task_id=str(task.id)).info("task_retry_requested")
    return _to_response(task)
