"""Run due scheduled report tasks.

Each due task is claimed, fetched, synthesized, optionally delivered and
then rescheduled. A failing task is marked failed and never stops the
remaining tasks from running.
"""

import re
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from reporter.config import get_config
from reporter.core.datetime_utils import utc_now
from reporter.core.exceptions import ConfigurationError, DeliveryError, IncompleteMapping
from reporter.core.logging import get_logger
from reporter.models.task import ScheduledTask, TaskStatus
from reporter.schemas.report import ChartOptions, OutputOptions, ReportArtifact, RunResult
from reporter.services.data_fetch import build_default_criteria, fetch_profile_rows
from reporter.services.email_service import BaseTransport, deliver_report
from reporter.services.profile_store import get_active_profile, get_template, get_user
from reporter.services.report_synthesizer import BaseReportSynthesizer, get_synthesizer
from reporter.services.rescheduler import reschedule
from reporter.services.task_store import claim_task, get_task, list_due_tasks, set_task_status

logger = get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s")


def default_file_name(task_name: str, now: datetime) -> str:
    return f"{_WHITESPACE_RE.sub('_', task_name)}_{now.isoformat()}"


async def generate_task_report(
    db: AsyncSession,
    task: ScheduledTask,
    synthesizer: BaseReportSynthesizer | None = None,
    now: datetime | None = None,
) -> ReportArtifact:
    """
    Fetch data for a claimed task and synthesize its report.

    Raises:
        ConfigurationError: Missing template, profile, connection fields or mapping
        SchemaMismatchError: Mapped table or columns do not exist
        ConnectivityError: Data source unreachable or query failed
        SynthesisError: Report generation failed
    """
    now = now or utc_now()
    config = get_config()

    template = await get_template(db, task.template_id)
    if not template:
        raise ConfigurationError(f"Template with ID {task.template_id} not found.")

    profile = await get_active_profile(db, task.user_id)
    if not profile:
        raise ConfigurationError(
            "No active data source profile. Please configure a connection in Settings."
        )
    if not profile.mapping.is_complete():
        raise IncompleteMapping(profile.mapping.missing_fields())

    criteria = build_default_criteria(task.entity_ids, report_type=template.category, now=now)
    rows = await fetch_profile_rows(profile, criteria)

    chart_options = ChartOptions(
        include_charts=config.engine.include_charts,
        chart_type=config.engine.chart_type,
        chart_title=f"{template.name} - {now.date().isoformat()}",
        x_axis_field="machine",
        y_axis_field="value",
    )
    output_options = OutputOptions(
        format=config.engine.output_format,
        file_name=default_file_name(task.name, now),
    )

    synthesizer = synthesizer or get_synthesizer()
    return await synthesizer.generate(rows, template, criteria, chart_options, output_options)


async def notify_owner(
    db: AsyncSession,
    task: ScheduledTask,
    artifact: ReportArtifact,
    transport: BaseTransport | None = None,
) -> None:
    """Email the report to the task owner if they opted in. Never raises DeliveryError."""
    user = await get_user(db, task.user_id)
    if not user or not user.notify_by_email or not user.email:
        logger.bind(task_id=str(task.id)).debug("report_delivery_skipped")
        return

    try:
        await deliver_report(db, user.email, task.name, artifact, transport=transport)
    except DeliveryError as e:
        logger.bind(task_id=str(task.id), error=str(e)).warning("report_delivery_failed_nonfatal")


async def run_due_tasks(
    db: AsyncSession,
    *,
    synthesizer: BaseReportSynthesizer | None = None,
    transport: BaseTransport | None = None,
    now: datetime | None = None,
) -> RunResult:
    """
    Process every task that is due.

    Tasks run one at a time. processed_count counts successful tasks only.

    Args:
        db: Database session; committed after each task
        synthesizer: Synthesis provider (defaults to get_synthesizer())
        transport: Delivery transport (defaults to get_transport())
        now: Reference time (defaults to utc_now())

    Returns:
        RunResult with one error line per failed task and the artifacts
        produced, keyed by task id
    """
    now = now or utc_now()
    due_tasks = await list_due_tasks(db, now)

    if not due_tasks:
        logger.debug("no_due_tasks")
        return RunResult(success=True, processed_count=0, errors=[])

    logger.bind(count=len(due_tasks)).info("due_tasks_found")

    errors: list[str] = []
    artifacts: dict[str, ReportArtifact] = {}
    processed_count = 0

    pending = [(task.id, task.name) for task in due_tasks]

    for task_uuid, task_name in pending:
        task_id = str(task_uuid)

        # A rollback for an earlier failure expires every loaded task
        task = await get_task(db, task_uuid)
        if not task or task.status != TaskStatus.SCHEDULED:
            continue
        if not await claim_task(db, task):
            continue
        await db.commit()

        try:
            artifact = await generate_task_report(db, task, synthesizer=synthesizer, now=now)

            await notify_owner(db, task, artifact, transport=transport)
            await reschedule(db, task, now)
            await db.commit()

            artifacts[task_id] = artifact
            processed_count += 1
            logger.bind(task_id=task_id, file_name=artifact.file_name).info("task_processed")

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.bind(task_id=task_id, name=task_name, error=message).error("task_failed")

            await db.rollback()
            await db.refresh(task)
            await set_task_status(db, task, TaskStatus.FAILED, error=message)
            await db.commit()

            errors.append(f"Task {task_id} ({task_name}) failed: {message}")

    logger.bind(
        due=len(due_tasks),
        processed=processed_count,
        failed=len(errors),
    ).info("run_due_tasks_complete")

    return RunResult(
        success=not errors,
        processed_count=processed_count,
        errors=errors,
        artifacts=artifacts,
    )
