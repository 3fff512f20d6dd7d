"""Job monitoring API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel
from sqlalchemy import select

from reporter.core.scheduler import get_job_schedules
from reporter.dependencies import DBSession
from reporter.models.job_run import JobRun

router = APIRouter()


class ScheduleResponse(BaseModel):
    """Response model for a job schedule."""

    id: str
    task_id: str
    trigger: str
    next_fire_time: str | None
    last_fire_time: str | None


class JobRunResponse(BaseModel):
    """Response model for a job run."""

    id: str
    job_id: str
    scheduled_at: datetime
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
    outcome: str
    error: str | None


@router.get("/jobs/schedules", response_model=list[ScheduleResponse])
async def list_schedules() -> list[ScheduleResponse]:
    """List the in-process trigger schedules with next/last fire times."""
    schedules = await get_job_schedules()
    return [ScheduleResponse(**s) for s in schedules]


@router.get("/jobs/runs", response_model=list[JobRunResponse])
async def list_job_runs(
    db: DBSession,
    job_id: str | None = Query(default=None, description="Filter by job ID"),
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobRunResponse]:
    """
    List trigger execution history.

    Each periodic sweep over due tasks records one run.
    """
    query = select(JobRun).order_by(JobRun.scheduled_at.desc())

    if job_id:
        query = query.where(JobRun.job_id == job_id)

    result = await db.execute(query.offset(offset).limit(limit))
    runs = result.scalars().all()

    return [
        JobRunResponse(
            id=run.id,
            job_id=run.job_id,
            scheduled_at=run.scheduled_at,
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_seconds=(run.finished_at - run.started_at).total_seconds(),
            outcome=run.outcome,
            error=run.error,
        )
        for run in runs
    ]
