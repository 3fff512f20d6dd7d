from typing import Literal

from pydantic import BaseModel, Field


class ReportSynthesisOutput(BaseModel):
    """
    Structured output schema for LLM report synthesis.

    Used with OpenAI's response_format for guaranteed schema compliance.
    """

    report_content: str = Field(
        description=(
            "The full content of the generated report in the requested format "
            "(structured Markdown for pdf, or a raw CSV string for csv)."
        ),
    )
    file_name: str = Field(description="The suggested file name for the report.")
    format: Literal["pdf", "csv"] = Field(description="The format of the generated report content.")


class SynthesisRowInput(BaseModel):
    """Row as rendered into the prompt."""

    timestamp: str
    machine: str
    parameter: str
    value: str
    unit: str
