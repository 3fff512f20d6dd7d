"""Parameterized queries over the mapped measurement table.

Identifiers come only from a ``ValidatedMapping`` and are always quoted by
the dialect (``[Name]`` on SQL Server). Every filter value is a bound
parameter.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, Select, String, column, select, table
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql import quoted_name

from reporter.core.logging import get_logger
from reporter.datasource.mapping import ColumnMapping, ValidatedMapping, validate_mapping
from reporter.schemas.report import NO_UNIT, DataRow, FetchCriteria

logger = get_logger(__name__)


def _quoted(name: str) -> quoted_name:
    return quoted_name(name, quote=True)


def _mapped_columns(mapping: ValidatedMapping) -> dict[str, Any]:
    """Lightweight table construct for the mapped table."""
    timestamp = column(_quoted(mapping.timestamp_column), DateTime)
    entity = column(_quoted(mapping.entity_column), String)
    parameter = column(_quoted(mapping.parameter_column), String)
    value = column(_quoted(mapping.value_column))
    source = table(_quoted(mapping.table), timestamp, entity, parameter, value)
    return {
        "table": source,
        "timestamp": timestamp,
        "entity": entity,
        "parameter": parameter,
        "value": value,
    }


def build_data_query(mapping: ValidatedMapping, criteria: FetchCriteria) -> Select:
    """
    Build the measurement SELECT for a time range and entity/parameter filters.

    Args:
        mapping: Schema-validated mapping
        criteria: Date range plus entity ids (required) and parameter ids (optional)

    Returns:
        Select yielding parameter, timestamp, value, machine, newest first

    Raises:
        ValueError: If criteria has no entity ids (an unfiltered scan is never built)
    """
    if not criteria.entity_ids:
        raise ValueError("At least one entity id is required to build a data query")

    cols = _mapped_columns(mapping)

    stmt = (
        select(
            cols["parameter"].label("parameter"),
            cols["timestamp"].label("timestamp"),
            cols["value"].label("value"),
            cols["entity"].label("machine"),
        )
        .select_from(cols["table"])
        .where(cols["timestamp"].between(criteria.date_from, criteria.date_to))
        .where(cols["entity"].in_(criteria.entity_ids))
    )

    if criteria.parameter_ids:
        stmt = stmt.where(cols["parameter"].in_(criteria.parameter_ids))

    return stmt.order_by(cols["timestamp"].desc())


def build_parameter_query(mapping: ValidatedMapping, entity_ids: list[str]) -> Select:
    """Distinct parameter names recorded for the given entities, ascending."""
    if not entity_ids:
        raise ValueError("At least one entity id is required to build a parameter query")

    cols = _mapped_columns(mapping)
    parameter = cols["parameter"].label("parameter")

    return (
        select(parameter)
        .distinct()
        .select_from(cols["table"])
        .where(cols["entity"].in_(entity_ids))
        .order_by(parameter)
    )


def _coerce_value(value: Any) -> float | int | str:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, int | float | str):
        return value
    if value is None:
        return ""
    return str(value)


def shape_row(row: Any) -> DataRow:
    """Turn a result mapping into a DataRow keyed by parameter and timestamp."""
    timestamp = row["timestamp"]
    if not isinstance(timestamp, datetime):
        timestamp = datetime.fromisoformat(str(timestamp))
    parameter = str(row["parameter"])

    return DataRow(
        id=DataRow.make_id(parameter, timestamp),
        timestamp=timestamp,
        machine=str(row["machine"]),
        parameter=parameter,
        value=_coerce_value(row["value"]),
        unit=NO_UNIT,
    )


async def fetch_rows(
    conn: AsyncConnection,
    mapping: ColumnMapping,
    criteria: FetchCriteria,
) -> list[DataRow]:
    """
    Validate the mapping and fetch measurement rows.

    An empty entity list returns no rows and issues no query at all.
    """
    if not criteria.entity_ids:
        logger.bind(table=mapping.table).warning("fetch_skipped_no_entities")
        return []

    validated = await validate_mapping(conn, mapping)
    stmt = build_data_query(validated, criteria)

    result = await conn.execute(stmt)
    rows = [shape_row(row) for row in result.mappings()]

    logger.bind(
        table=validated.table,
        entities=len(criteria.entity_ids),
        parameters=len(criteria.parameter_ids) or "all",
        rows=len(rows),
    ).info("data_rows_fetched")
    return rows


async def list_parameters(
    conn: AsyncConnection,
    mapping: ColumnMapping,
    entity_ids: list[str],
) -> list[str]:
    """Distinct parameter (tag) names available for the given entities."""
    if not entity_ids:
        return []

    validated = await validate_mapping(conn, mapping)
    result = await conn.execute(build_parameter_query(validated, entity_ids))
    return [str(name) for name in result.scalars().all()]
