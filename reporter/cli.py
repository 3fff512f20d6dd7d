"""
Reporter CLI - Command line interface for the scheduled report engine.

Usage:
    reporter --help                    Show all commands
    reporter run                       Process all due tasks now
    reporter schedule NAME ...         Schedule a new report task
    reporter tasks                     List tasks with their display status
    reporter retry TASK_ID             Re-arm a failed task
    reporter check-connection USER_ID  Test a user's active data source
"""

import asyncio
import uuid
from datetime import UTC, datetime

import typer

from reporter.models.task import Recurrence

app = typer.Typer(
    name="reporter",
    help="Reporter CLI - Scheduled SCADA report engine",
    no_args_is_help=True,
)


# --- Output helpers ---


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        _print_error(f"Invalid {label}: {value}")
        raise typer.Exit(1) from None


@app.command()
def run():
    """Process all due tasks once (fetch, synthesize, deliver, reschedule)."""
    from reporter.jobs.run_due import main

    result = asyncio.run(main())

    typer.echo(f"\nProcessed {result.processed_count} task(s)")
    for error in result.errors:
        _print_error(error)

    if not result.success:
        raise typer.Exit(1)


@app.command()
def schedule(
    name: str = typer.Argument(..., help="Task name"),
    template_id: str = typer.Option(..., "--template", "-t", help="Report template ID"),
    user_id: str = typer.Option(..., "--user", "-u", help="Owning user ID"),
    at: datetime | None = typer.Option(
        None,
        "--at",
        help="Scheduled time in UTC (ISO 8601). Defaults to now.",
        formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"],
    ),
    recurrence: Recurrence = typer.Option(Recurrence.NONE, "--recurrence", "-r"),
    entity: list[str] | None = typer.Option(
        None, "--entity", "-e", help="Entity (machine) ID, repeatable"
    ),
):
    """Schedule a new report task."""
    from reporter.core.database import AsyncSessionLocal
    from reporter.core.datetime_utils import utc_now
    from reporter.core.logging import setup_logging
    from reporter.services.profile_store import get_template, get_user
    from reporter.services.task_store import create_task

    setup_logging()
    template_uuid = _parse_uuid(template_id, "template ID")
    user_uuid = _parse_uuid(user_id, "user ID")
    scheduled_time = at.astimezone(UTC).replace(tzinfo=None) if at and at.tzinfo else at

    async def _schedule() -> str | None:
        async with AsyncSessionLocal() as db:
            if not await get_user(db, user_uuid):
                _print_error("User not found")
                return None
            if not await get_template(db, template_uuid):
                _print_error("Template not found")
                return None

            task = await create_task(
                db,
                name=name,
                template_id=template_uuid,
                user_id=user_uuid,
                scheduled_time=scheduled_time or utc_now(),
                recurrence=recurrence,
                entity_ids=entity or None,
            )
            await db.commit()
            return str(task.id)

    task_id = asyncio.run(_schedule())
    if not task_id:
        raise typer.Exit(1)

    _print_success(f"Scheduled task {task_id}")


@app.command()
def tasks(
    user_id: str | None = typer.Option(None, "--user", "-u", help="Filter by owning user ID"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum tasks to show"),
):
    """List scheduled tasks with their display status."""
    from reporter.core.database import AsyncSessionLocal
    from reporter.core.datetime_utils import utc_now
    from reporter.core.logging import setup_logging
    from reporter.services.task_store import list_tasks

    setup_logging()
    user_uuid = _parse_uuid(user_id, "user ID") if user_id else None

    async def _list() -> list[tuple[str, str, str, str, str | None]]:
        async with AsyncSessionLocal() as db:
            found = await list_tasks(db, user_id=user_uuid, limit=limit)
            now = utc_now()
            return [
                (
                    str(task.id),
                    task.name,
                    task.scheduled_time.isoformat(timespec="minutes"),
                    task.display_status(now),
                    task.last_error,
                )
                for task in found
            ]

    rows = asyncio.run(_list())
    if not rows:
        typer.echo("No tasks found")
        return

    for task_id, name, scheduled, status, last_error in rows:
        typer.echo(f"{task_id}  {scheduled}  {status:<10}  {name}")
        if last_error:
            _print_warning(last_error)


@app.command()
def retry(task_id: str = typer.Argument(..., help="ID of the failed task")):
    """Re-arm a failed task so the next run picks it up."""
    from reporter.core.database import AsyncSessionLocal
    from reporter.core.datetime_utils import utc_now
    from reporter.core.exceptions import InvalidTransition
    from reporter.core.logging import setup_logging
    from reporter.services.task_store import get_task, reschedule_task

    setup_logging()
    task_uuid = _parse_uuid(task_id, "task ID")

    async def _retry() -> str | None:
        async with AsyncSessionLocal() as db:
            task = await get_task(db, task_uuid)
            if not task:
                return "Task not found"
            try:
                await reschedule_task(db, task, utc_now())
            except InvalidTransition as e:
                return str(e)
            await db.commit()
            return None

    error = asyncio.run(_retry())
    if error:
        _print_error(error)
        raise typer.Exit(1)

    _print_success(f"Task {task_id} re-armed")


@app.command()
def check_connection(user_id: str = typer.Argument(..., help="User whose active profile to test")):
    """Test connectivity of a user's active data source profile."""
    from reporter.core.database import AsyncSessionLocal
    from reporter.core.logging import setup_logging
    from reporter.services.data_fetch import check_profile_connection
    from reporter.services.profile_store import get_active_profile

    setup_logging()
    user_uuid = _parse_uuid(user_id, "user ID")

    async def _check() -> tuple[bool, str]:
        async with AsyncSessionLocal() as db:
            profile = await get_active_profile(db, user_uuid)
            if not profile:
                return False, "No active data source profile"
            check = await check_profile_connection(profile)
            return check.success, check.message

    success, message = asyncio.run(_check())
    if not success:
        _print_error(message)
        raise typer.Exit(1)

    _print_success(message)


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server (includes the in-process scheduler)."""
    import subprocess

    cmd = ["uvicorn", "reporter.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
