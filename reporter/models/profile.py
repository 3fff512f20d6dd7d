"""Per-user data source connection profile."""

import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reporter.datasource.connection import is_connection_string
from reporter.datasource.mapping import ColumnMapping
from reporter.models.base import Base, TimestampMixin


class DataSourceProfile(Base, TimestampMixin):
    """A named data source configuration plus its column mapping, owned by a user."""

    __tablename__ = "data_source_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))

    # Connection
    server: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    database_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    db_user: Mapped[str | None] = mapped_column(String(255), nullable=True)
    db_password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Column mapping
    mapping_table: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mapping_timestamp_column: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mapping_entity_column: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mapping_parameter_column: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mapping_value_column: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def mapping(self) -> ColumnMapping:
        return ColumnMapping(
            table=self.mapping_table,
            timestamp_column=self.mapping_timestamp_column,
            entity_column=self.mapping_entity_column,
            parameter_column=self.mapping_parameter_column,
            value_column=self.mapping_value_column,
        )

    def missing_connection_fields(self) -> list[str]:
        """Connection fields that must be filled before the profile can be used.

        The database name is only required when the server is a bare host name;
        a full connection string already names its database.
        """
        missing = []
        if not self.server:
            missing.append("server")
        elif not is_connection_string(self.server) and not self.database_name:
            missing.append("database name")
        return missing

    def __repr__(self) -> str:
        return f"<DataSourceProfile {self.name}>"
