"""Transport attempt history."""

import uuid

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reporter.models.base import Base, TimestampMixin


class DeliveryLog(Base, TimestampMixin):
    """One row per report email attempt, sent or failed."""

    __tablename__ = "delivery_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    to: Mapped[str] = mapped_column(String(255), index=True)
    subject: Mapped[str] = mapped_column(String(500))
    status: Mapped[str] = mapped_column(String(20))  # sent, failed
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<DeliveryLog {self.to} {self.status}>"
