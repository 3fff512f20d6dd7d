"""Validate a user-declared column mapping against the live schema.

User-supplied table and column names must never reach SQL text unchecked.
``validate_mapping`` is the only way to obtain a ``ValidatedMapping``, and
the query builder only accepts that type.
"""

from dataclasses import dataclass

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncConnection

from reporter.core.exceptions import IncompleteMapping, UnknownColumns, UnknownTable
from reporter.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ColumnMapping:
    """Correspondence between report fields and actual table columns."""

    table: str | None = None
    timestamp_column: str | None = None
    entity_column: str | None = None
    parameter_column: str | None = None
    value_column: str | None = None

    def missing_fields(self) -> list[str]:
        """Names of mapping fields that are empty."""
        fields = {
            "table": self.table,
            "timestamp column": self.timestamp_column,
            "machine column": self.entity_column,
            "parameter column": self.parameter_column,
            "value column": self.value_column,
        }
        return [name for name, value in fields.items() if not value]

    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def columns(self) -> list[str]:
        """Mapped columns in request order: timestamp, entity, parameter, value."""
        return [
            self.timestamp_column or "",
            self.entity_column or "",
            self.parameter_column or "",
            self.value_column or "",
        ]


@dataclass(frozen=True)
class ValidatedMapping:
    """A mapping whose identifiers were confirmed against the schema.

    Names carry the schema's own spelling. Valid for one query build only;
    schemas change, so every fetch validates again.
    """

    table: str
    timestamp_column: str
    entity_column: str
    parameter_column: str
    value_column: str


async def validate_mapping(conn: AsyncConnection, mapping: ColumnMapping) -> ValidatedMapping:
    """
    Confirm the mapped table and its four columns exist.

    Args:
        conn: Open connection to the data source
        mapping: User-declared mapping

    Returns:
        ValidatedMapping safe to quote into query text

    Raises:
        IncompleteMapping: If any of the five fields is empty
        UnknownTable: If the table does not exist
        UnknownColumns: If any mapped column is absent, listing exactly those
    """
    missing_fields = mapping.missing_fields()
    if missing_fields:
        raise IncompleteMapping(missing_fields)

    table = mapping.table or ""

    table_exists = await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table))
    if not table_exists:
        logger.bind(table=table).warning("mapping_unknown_table")
        raise UnknownTable(table)

    found = await conn.run_sync(
        lambda sync_conn: [col["name"] for col in inspect(sync_conn).get_columns(table)]
    )
    # SQL Server identifiers are case-insensitive under the default collation
    found_by_key = {name.lower(): name for name in found}

    requested = mapping.columns
    missing = list(dict.fromkeys(col for col in requested if col.lower() not in found_by_key))
    if missing:
        logger.bind(table=table, missing=missing).warning("mapping_unknown_columns")
        raise UnknownColumns(table, missing)

    timestamp, entity, parameter, value = (found_by_key[col.lower()] for col in requested)
    return ValidatedMapping(
        table=table,
        timestamp_column=timestamp,
        entity_column=entity,
        parameter_column=parameter,
        value_column=value,
    )


async def list_schema(conn: AsyncConnection) -> dict[str, list[str]]:
    """
    Base tables of the data source and their columns, for building a mapping.

    Returns:
        Table name to column names, tables sorted, columns in schema order
    """

    def _inspect(sync_conn) -> dict[str, list[str]]:
        inspector = inspect(sync_conn)
        return {
            table: [col["name"] for col in inspector.get_columns(table)]
            for table in sorted(inspector.get_table_names())
        }

    schema = await conn.run_sync(_inspect)
    logger.bind(tables=len(schema)).debug("schema_listed")
    return schema
