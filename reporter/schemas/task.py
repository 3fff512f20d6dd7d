import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from reporter.models.task import Recurrence


class TaskCreate(BaseModel):
    """Request body for scheduling a new task."""

    name: str = Field(min_length=1, description="Task name is required.")
    template_id: uuid.UUID
    user_id: uuid.UUID
    scheduled_time: datetime
    recurrence: Recurrence = Recurrence.NONE
    entity_ids: list[str] | None = None


class TaskResponse(BaseModel):
    """A scheduled task as presented to users."""

    id: uuid.UUID
    name: str
    template_id: uuid.UUID
    user_id: uuid.UUID
    scheduled_time: datetime
    recurrence: str
    status: str
    display_status: str
    last_error: str | None
    last_run_at: datetime | None


class RunResponse(BaseModel):
    """Response model for a trigger invocation."""

    success: bool
    processed_count: int
    errors: list[str]


class ConnectionCheckResponse(BaseModel):
    """Response model for a data source health check."""

    success: bool
    message: str
    latency_ms: int | None = None
