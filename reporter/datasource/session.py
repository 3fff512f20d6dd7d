"""Scoped data source connections.

Each fetch gets its own engine and connection, released on every exit path.
Nothing is pooled across tasks or pipeline stages.
"""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine
from sqlalchemy.pool import NullPool

from reporter.core.exceptions import ConnectivityError
from reporter.core.logging import get_logger
from reporter.datasource.connection import ConnectionConfig

logger = get_logger(__name__)

_DRIVER_ERRORS = (DBAPIError, OSError, TimeoutError)


@asynccontextmanager
async def open_data_source(config: ConnectionConfig) -> AsyncIterator[AsyncConnection]:
    """
    Open a single connection to the data source and dispose of it afterwards.

    Driver, network and timeout failures raised while connecting or inside
    the block surface as ConnectivityError. Other errors (schema mismatches)
    propagate unchanged.
    """
    engine = create_async_engine(
        config.url,
        poolclass=NullPool,
        connect_args=config.connect_args,
    )
    try:
        try:
            conn = await engine.connect()
        except _DRIVER_ERRORS as e:
            logger.bind(target=config.describe(), error=str(e)).error("datasource_connect_failed")
            raise ConnectivityError(
                f"Database connection failed: {e}. "
                "Please check your connection details in Settings."
            ) from e

        try:
            yield conn
        except _DRIVER_ERRORS as e:
            logger.bind(target=config.describe(), error=str(e)).error("datasource_query_failed")
            raise ConnectivityError(
                f"Database query failed: {e}. "
                "Please check your connection details and mappings in Settings."
            ) from e
        finally:
            await conn.close()
    finally:
        await engine.dispose()


@dataclass
class ConnectionCheck:
    """Outcome of a data source health check."""

    success: bool
    message: str
    latency_ms: int | None = None


async def check_connection(config: ConnectionConfig) -> ConnectionCheck:
    """Connect, run a trivial query and report latency. Never raises."""
    started = time.perf_counter()
    try:
        async with open_data_source(config) as conn:
            await conn.execute(text("SELECT 1"))
    except ConnectivityError as e:
        return ConnectionCheck(success=False, message=str(e))

    latency_ms = int((time.perf_counter() - started) * 1000)
    logger.bind(target=config.describe(), latency_ms=latency_ms).info("datasource_check_ok")
    return ConnectionCheck(
        success=True,
        message=f"Successfully connected to the database. Latency: {latency_ms}ms",
        latency_ms=latency_ms,
    )
