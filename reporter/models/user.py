import uuid

from sqlalchemy import Boolean, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reporter.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Owner of scheduled tasks and data source profiles."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    notify_by_email: Mapped[bool] = mapped_column(Boolean, default=False)
    # Soft reference: profiles are owned by users, so no FK cycle here
    active_profile_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
