"""Scheduled report task model and its status state machine."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reporter.core.exceptions import InvalidTransition
from reporter.models.base import Base, TimestampMixin


class TaskStatus(str, enum.Enum):
    """Persisted task states."""

    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Recurrence(str, enum.Enum):
    """How a successfully completed task is re-armed."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# Display-only state for scheduled tasks whose time has passed. Never stored.
OVERDUE = "overdue"

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.SCHEDULED: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset(
        {TaskStatus.SCHEDULED, TaskStatus.COMPLETED, TaskStatus.FAILED}
    ),
    TaskStatus.COMPLETED: frozenset(),
    # Manual operator re-trigger only
    TaskStatus.FAILED: frozenset({TaskStatus.SCHEDULED}),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Check whether a status change is allowed."""
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise InvalidTransition if current -> target is not allowed."""
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)


class ScheduledTask(Base, TimestampMixin):
    """A report generation task due at scheduled_time."""

    __tablename__ = "scheduled_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("report_templates.id", ondelete="RESTRICT"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    scheduled_time: Mapped[datetime] = mapped_column(index=True)
    recurrence: Mapped[Recurrence] = mapped_column(
        Enum(
            Recurrence,
            values_callable=lambda e: [x.value for x in e],
            name="recurrence",
            native_enum=False,
            length=20,
        ),
        default=Recurrence.NONE,
    )
    status: Mapped[TaskStatus] = mapped_column(
        Enum(
            TaskStatus,
            values_callable=lambda e: [x.value for x in e],
            name="taskstatus",
            native_enum=False,
            length=20,
        ),
        default=TaskStatus.SCHEDULED,
        index=True,
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    last_run_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def display_status(self, now: datetime) -> str:
        """Status as presented to users, with overdue derived from scheduled_time."""
        if self.status == TaskStatus.SCHEDULED and self.scheduled_time <= now:
            return OVERDUE
        return self.status.value

    def __repr__(self) -> str:
        return f"<ScheduledTask {self.name} ({self.status.value})>"
