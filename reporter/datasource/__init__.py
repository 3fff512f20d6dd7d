"""Access to the user-configured SCADA data source."""

from .connection import (
    ConnectionConfig,
    is_connection_string,
    merge_credentials,
    resolve_connection,
)
from .mapping import ColumnMapping, ValidatedMapping, list_schema, validate_mapping
from .query import build_data_query, build_parameter_query, fetch_rows, list_parameters
from .session import ConnectionCheck, check_connection, open_data_source

__all__ = [
    "ColumnMapping",
    "ConnectionCheck",
    "ConnectionConfig",
    "ValidatedMapping",
    "build_data_query",
    "build_parameter_query",
    "check_connection",
    "fetch_rows",
    "is_connection_string",
    "list_parameters",
    "list_schema",
    "merge_credentials",
    "open_data_source",
    "resolve_connection",
    "validate_mapping",
]
