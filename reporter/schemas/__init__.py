from reporter.schemas.llm import ReportSynthesisOutput
from reporter.schemas.report import (
    ChartOptions,
    DataRow,
    FetchCriteria,
    OutputOptions,
    ReportArtifact,
    RunResult,
)

__all__ = [
    "ChartOptions",
    "DataRow",
    "FetchCriteria",
    "OutputOptions",
    "ReportArtifact",
    "ReportSynthesisOutput",
    "RunResult",
]
