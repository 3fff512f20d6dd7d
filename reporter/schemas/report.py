from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ReportFormat = Literal["pdf", "csv"]

NO_UNIT = "N/A"


class DataRow(BaseModel):
    """One fetched measurement. Lives only for a single pipeline run."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    machine: str
    parameter: str
    value: float | int | str
    unit: str = NO_UNIT

    @staticmethod
    def make_id(parameter: str, timestamp: datetime) -> str:
        """Stable row key. Duplicate (parameter, timestamp) pairs collide."""
        return f"{parameter}-{timestamp.isoformat()}"


class FetchCriteria(BaseModel):
    """Time range and identifier filters for one data fetch."""

    date_from: datetime
    date_to: datetime
    entity_ids: list[str] = Field(default_factory=list)
    parameter_ids: list[str] = Field(default_factory=list)  # empty means all parameters
    report_type: str | None = None


class ChartOptions(BaseModel):
    """Chart hints passed to the synthesis service."""

    include_charts: bool = True
    chart_type: str = "bar"
    chart_title: str = ""
    x_axis_field: str = "machine"
    y_axis_field: str = "value"


class OutputOptions(BaseModel):
    """Requested output format and file name."""

    format: ReportFormat = "pdf"
    file_name: str


class ReportArtifact(BaseModel):
    """Generated report content. Never persisted."""

    content: str
    file_name: str
    format: ReportFormat

    def with_extension(self) -> "ReportArtifact":
        """Ensure the file name ends with the extension matching the format."""
        extension = ".md" if self.format == "pdf" else ".csv"
        if self.file_name.endswith(extension):
            return self
        return self.model_copy(update={"file_name": f"{self.file_name}{extension}"})


class RunResult(BaseModel):
    """Aggregate outcome of one engine invocation."""

    success: bool
    processed_count: int
    errors: list[str]
    artifacts: dict[str, ReportArtifact] = Field(default_factory=dict, exclude=True)
