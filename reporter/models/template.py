import uuid
from datetime import datetime

from sqlalchemy import String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from reporter.models.base import Base


class ReportTemplate(Base):
    """Report template descriptor handed to the synthesis service."""

    __tablename__ = "report_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(100), default="Production")
    last_modified: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<ReportTemplate {self.name}>"
