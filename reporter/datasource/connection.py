"""Resolve a user-entered server descriptor into a driver-ready connection config.

Users may type either a bare host/instance name (``scada-db01\\SQLEXPRESS``)
with separate database and credential fields, or a full ODBC-style
connection string (``Server=scada-db01;Database=Historian;Trusted_Connection=yes;``).
Everything here is pure string composition and never touches the network.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.engine import URL

from reporter.config import Settings, get_settings

_CONNECTION_STRING_RE = re.compile(r".+?=.+?;", re.IGNORECASE)
_USER_KEY_RE = re.compile(r"user id=|uid=", re.IGNORECASE)
_PASSWORD_KEY_RE = re.compile(r"password=|pwd=", re.IGNORECASE)
_DRIVER_KEY_RE = re.compile(r"driver=", re.IGNORECASE)
_PASSWORD_VALUE_RE = re.compile(r"((?:password|pwd)=)([^;]*)", re.IGNORECASE)


def is_connection_string(server: str) -> bool:
    """Return True if the descriptor already contains a ``key=value;`` pair."""
    return bool(_CONNECTION_STRING_RE.search(server))


def merge_credentials(conn_str: str, user: str | None = None, password: str | None = None) -> str:
    """Append credentials to a connection string unless it already carries them.

    Matching is case-insensitive on ``user id=``/``uid=`` and
    ``password=``/``pwd=``, so calling this repeatedly never duplicates fields.
    """
    merged = conn_str
    if user and not _USER_KEY_RE.search(merged):
        merged = f"{merged.rstrip(';')};User ID={user}"
    if password and not _PASSWORD_KEY_RE.search(merged):
        merged = f"{merged.rstrip(';')};Password={password}"
    return merged


def mask_connection_string(conn_str: str) -> str:
    """Hide password values for logging."""
    return _PASSWORD_VALUE_RE.sub(r"\1***", conn_str)


@dataclass(frozen=True)
class ConnectionConfig:
    """Normalized connection configuration for the async SQLAlchemy engine."""

    url: URL
    connect_args: dict[str, Any] = field(default_factory=dict)
    query_timeout: float | None = None
    from_connection_string: bool = False

    def describe(self) -> str:
        """Render the target without secrets."""
        if self.from_connection_string:
            return mask_connection_string(self.url.query.get("odbc_connect", ""))
        return self.url.render_as_string(hide_password=True)


def _odbc_flag(value: bool) -> str:
    return "yes" if value else "no"


def resolve_connection(
    server: str,
    user: str | None = None,
    password: str | None = None,
    database: str | None = None,
    settings: Settings | None = None,
) -> ConnectionConfig:
    """
    Build a connection config from a profile's server descriptor.

    Args:
        server: Bare host/instance name or a full ``key=value;`` connection string
        user: Optional login, merged in only where not already present
        password: Optional password, merged in only where not already present
        database: Database name, used only for bare host names
        settings: Overrides the cached application settings (driver, timeouts)

    Returns:
        ConnectionConfig ready for ``create_async_engine``
    """
    settings = settings or get_settings()
    connect_args: dict[str, Any] = {"timeout": settings.datasource_connect_timeout}

    if is_connection_string(server):
        conn_str = merge_credentials(server, user, password)
        if not _DRIVER_KEY_RE.search(conn_str):
            conn_str = f"Driver={{{settings.datasource_odbc_driver}}};{conn_str}"
        url = URL.create(settings.datasource_dialect, query={"odbc_connect": conn_str})
        return ConnectionConfig(
            url=url,
            connect_args=connect_args,
            query_timeout=settings.datasource_query_timeout,
            from_connection_string=True,
        )

    query: dict[str, str] = {}
    if settings.datasource_dialect.startswith("mssql"):
        query = {
            "driver": settings.datasource_odbc_driver,
            "Encrypt": _odbc_flag(settings.datasource_encrypt),
            "TrustServerCertificate": _odbc_flag(settings.datasource_trust_server_certificate),
        }

    url = URL.create(
        settings.datasource_dialect,
        username=user or None,
        password=password or None,
        host=server,
        database=database or None,
        query=query,
    )
    return ConnectionConfig(
        url=url,
        connect_args=connect_args,
        query_timeout=settings.datasource_query_timeout,
    )
