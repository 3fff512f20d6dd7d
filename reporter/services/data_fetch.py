"""Fetch measurement rows for a user's data source profile."""

import asyncio
from datetime import datetime

from reporter.config import get_config
from reporter.core.datetime_utils import get_cutoff, utc_now
from reporter.core.exceptions import ConfigurationError
from reporter.core.logging import get_logger
from reporter.datasource import (
    ConnectionConfig,
    check_connection,
    fetch_rows,
    list_parameters,
    list_schema,
    open_data_source,
    resolve_connection,
)
from reporter.datasource.session import ConnectionCheck
from reporter.models.profile import DataSourceProfile
from reporter.schemas.report import DataRow, FetchCriteria

logger = get_logger(__name__)


def build_default_criteria(
    entity_ids: list[str] | None = None,
    report_type: str | None = None,
    now: datetime | None = None,
) -> FetchCriteria:
    """Lookback window ending now, over the given entities or the configured defaults."""
    config = get_config()
    now = now or utc_now()
    return FetchCriteria(
        date_from=get_cutoff(hours=config.engine.lookback_hours, now=now),
        date_to=now,
        entity_ids=list(entity_ids) if entity_ids else list(config.engine.default_entity_ids),
        parameter_ids=[],
        report_type=report_type,
    )


def connection_for_profile(profile: DataSourceProfile) -> ConnectionConfig:
    """
    Resolve a profile's connection fields.

    Raises:
        ConfigurationError: If the server, or the database for a bare host, is missing
    """
    missing = profile.missing_connection_fields()
    if missing:
        raise ConfigurationError(
            "Database connection is not configured. Please set the "
            f"{' and '.join(missing)} in Settings."
        )

    return resolve_connection(
        profile.server or "",
        user=profile.db_user,
        password=profile.db_password,
        database=profile.database_name,
    )


async def fetch_profile_rows(profile: DataSourceProfile, criteria: FetchCriteria) -> list[DataRow]:
    """
    Fetch rows for criteria from the profile's data source.

    A fresh connection is opened for this call and released before returning.

    Raises:
        ConfigurationError: Incomplete connection fields or mapping
        SchemaMismatchError: Mapped table or columns do not exist
        ConnectivityError: Connect, query or timeout failure
    """
    config = connection_for_profile(profile)
    mapping = profile.mapping

    async with open_data_source(config) as conn:
        async with asyncio.timeout(config.query_timeout):
            rows = await fetch_rows(conn, mapping, criteria)

    logger.bind(profile_id=str(profile.id), rows=len(rows)).debug("profile_rows_fetched")
    return rows


async def fetch_profile_parameters(profile: DataSourceProfile, entity_ids: list[str]) -> list[str]:
    """Distinct parameter names available for entities in the profile's data source."""
    config = connection_for_profile(profile)

    async with open_data_source(config) as conn:
        async with asyncio.timeout(config.query_timeout):
            return await list_parameters(conn, profile.mapping, entity_ids)


async def fetch_profile_schema(profile: DataSourceProfile) -> dict[str, list[str]]:
    """Tables and columns of the profile's data source."""
    config = connection_for_profile(profile)

    async with open_data_source(config) as conn:
        async with asyncio.timeout(config.query_timeout):
            return await list_schema(conn)


async def check_profile_connection(profile: DataSourceProfile) -> ConnectionCheck:
    """Health check for a profile. Configuration problems are reported, not raised."""
    try:
        config = connection_for_profile(profile)
    except ConfigurationError as e:
        return ConnectionCheck(success=False, message=str(e))
    return await check_connection(config)
