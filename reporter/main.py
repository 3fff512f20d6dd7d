from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text

from reporter.api.router import api_router
from reporter.config import get_settings
from reporter.core.logging import get_logger, setup_logging
from reporter.core.scheduler import start_scheduler, stop_scheduler
from reporter.dependencies import DBSession

logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    setup_logging()
    await start_scheduler()
    yield
    # Shutdown
    await stop_scheduler()


app = FastAPI(
    title="Reporter",
    description="Scheduled SCADA report engine",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Include API routes
app.include_router(api_router)


@app.get("/health", response_model=None)
async def health_check(db: DBSession) -> dict[str, str] | JSONResponse:
    """Health check endpoint for load balancers. Verifies the task store is reachable."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.bind(error=str(e)).error("health_check_database_failed")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unreachable"},
        )
    return {"status": "healthy", "database": "ok"}
