"""
Due task sweep.

Run with: python -m reporter.jobs.run_due

This job:
1. Lists tasks whose scheduled time has passed
2. Fetches data, synthesizes and delivers each report
3. Reschedules recurring tasks and marks failures
"""

import asyncio

from reporter.core.database import AsyncSessionLocal
from reporter.core.logging import get_logger, setup_logging
from reporter.schemas.report import RunResult
from reporter.services.task_runner import run_due_tasks

logger = get_logger(__name__)


async def main() -> RunResult:
    """Run the due task sweep once."""
    setup_logging()
    logger.info("run_due_job_started")

    async with AsyncSessionLocal() as db:
        try:
            result = await run_due_tasks(db)
            logger.bind(
                processed=result.processed_count,
                errors=len(result.errors),
            ).info("run_due_job_completed")
            return result
        except Exception as e:
            logger.bind(error=str(e)).error("run_due_job_failed")
            raise


if __name__ == "__main__":
    asyncio.run(main())
