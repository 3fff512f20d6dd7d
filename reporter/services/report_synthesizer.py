"""Report content synthesis with an LLM."""

from abc import ABC, abstractmethod

import backoff
from httpx import HTTPStatusError
from openai import AsyncOpenAI, OpenAIError, RateLimitError

from reporter.config import get_settings
from reporter.core.exceptions import ConfigurationError, SynthesisError
from reporter.core.logging import get_logger
from reporter.models.template import ReportTemplate
from reporter.schemas.llm import ReportSynthesisOutput, SynthesisRowInput
from reporter.schemas.report import (
    ChartOptions,
    DataRow,
    FetchCriteria,
    OutputOptions,
    ReportArtifact,
)

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are an expert SCADA system analyst and technical writer.
Your job is to turn raw industrial measurements into a structured, professional report.

Rules:
- Base every statement on the provided data points; never invent measurements
- Let the template's purpose guide the analysis
- Production reports focus on output and efficiency
- Maintenance and Downtime reports focus on errors, stoppages and failure rates
- Quality reports focus on deviations from standards and consistency
- If there are no data points, say so plainly instead of speculating

Output format is strictly JSON matching the schema provided."""

PDF_INSTRUCTIONS = """Write the report as structured Markdown with these sections, in this order:

# {file_name}
*Report for the period: {date_from} to {date_to}*

## Report Parameters
- Template used, its category and its purpose
- Machines analyzed: {machines}
- Parameters/tags included: {parameters}
- Total data points analyzed: {row_count}

## Executive Summary
Key findings, trends, anomalies and significant metrics.

## Chart Analysis
- Chart type: {chart_type}
- What the chart "{chart_title}" (x: {x_axis}, y: {y_axis}) represents and what it shows.

## Raw Data
A Markdown table with columns Timestamp | Machine | Parameter | Value | Unit
containing every data point.

End with the line **End of Report.**"""

CSV_INSTRUCTIONS = """Output ONLY a valid CSV string of the data points.
The first line must be the header row: Timestamp,Machine,Parameter,Value,Unit
Each following line is one data point. No other text or explanation."""


def format_rows(rows: list[DataRow]) -> list[SynthesisRowInput]:
    """Render rows with prompt-friendly timestamps."""
    return [
        SynthesisRowInput(
            timestamp=row.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            machine=row.machine,
            parameter=row.parameter,
            value=str(row.value),
            unit=row.unit,
        )
        for row in rows
    ]


def build_user_prompt(
    rows: list[DataRow],
    template: ReportTemplate,
    criteria: FetchCriteria,
    chart_options: ChartOptions,
    output_options: OutputOptions,
) -> str:
    """Build the synthesis prompt for one report."""
    parameters = ", ".join(criteria.parameter_ids) if criteria.parameter_ids else "All available"

    prompt = f"""Generate a "{output_options.format}" report.

Template: "{template.name}" ({template.category})
Template purpose: {template.description or "n/a"}
File name: {output_options.file_name}

"""
    if output_options.format == "csv":
        prompt += CSV_INSTRUCTIONS
    else:
        prompt += PDF_INSTRUCTIONS.format(
            file_name=output_options.file_name,
            date_from=criteria.date_from.strftime("%Y-%m-%d"),
            date_to=criteria.date_to.strftime("%Y-%m-%d"),
            machines=", ".join(criteria.entity_ids),
            parameters=parameters,
            row_count=len(rows),
            chart_type=chart_options.chart_type if chart_options.include_charts else "none",
            chart_title=chart_options.chart_title,
            x_axis=chart_options.x_axis_field,
            y_axis=chart_options.y_axis_field,
        )

    prompt += f"\n\nData points ({len(rows)}):\n"
    for item in format_rows(rows):
        prompt += f"{item.timestamp} | {item.machine} | {item.parameter} | {item.value} | {item.unit}\n"

    prompt += "\nProduce a JSON result following the schema."
    return prompt


class BaseReportSynthesizer(ABC):
    """Abstract base class for report synthesis providers."""

    provider_name: str = "unknown"

    @abstractmethod
    async def generate(
        self,
        rows: list[DataRow],
        template: ReportTemplate,
        criteria: FetchCriteria,
        chart_options: ChartOptions,
        output_options: OutputOptions,
    ) -> ReportArtifact:
        """
        Generate report content from fetched rows.

        Args:
            rows: Data rows for the report period
            template: Report template guiding the analysis
            criteria: Criteria the rows were fetched with
            chart_options: Chart hints
            output_options: Requested format and file name

        Returns:
            ReportArtifact with the file name extension matching its format

        Raises:
            SynthesisError: If the provider fails or returns nothing
        """
        pass


class OpenAIReportSynthesizer(BaseReportSynthesizer):
    """Synthesizer backed by OpenAI structured outputs."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        timeout: float = 120.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ConfigurationError(
                "Report synthesis API key is not configured. Please set OPENAI_API_KEY."
            )
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    @backoff.on_exception(
        backoff.expo,
        (RateLimitError, HTTPStatusError),
        max_tries=5,
        max_time=120,
    )
    async def _parse(self, user_prompt: str) -> ReportSynthesisOutput | None:
        response = await self.client.beta.chat.completions.parse(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            response_format=ReportSynthesisOutput,
            temperature=0.3,
        )

        usage = response.usage
        if usage:
            logger.bind(
                model=self.model,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
            ).debug("synthesis_usage")

        return response.choices[0].message.parsed

    async def generate(
        self,
        rows: list[DataRow],
        template: ReportTemplate,
        criteria: FetchCriteria,
        chart_options: ChartOptions,
        output_options: OutputOptions,
    ) -> ReportArtifact:
        user_prompt = build_user_prompt(rows, template, criteria, chart_options, output_options)

        try:
            result = await self._parse(user_prompt)
        except (OpenAIError, HTTPStatusError) as e:
            logger.bind(template=template.name, error=str(e)).error("synthesis_failed")
            raise SynthesisError(f"Report generation failed: {e}") from e

        if not result:
            logger.bind(template=template.name).warning("synthesis_no_result")
            raise SynthesisError("The AI model failed to generate a report. It returned no output.")

        artifact = ReportArtifact(
            content=result.report_content,
            file_name=result.file_name or output_options.file_name,
            format=result.format,
        ).with_extension()

        logger.bind(
            template=template.name,
            rows=len(rows),
            file_name=artifact.file_name,
            format=artifact.format,
        ).info("report_synthesized")
        return artifact


_synthesizer_instance: BaseReportSynthesizer | None = None


def get_synthesizer() -> BaseReportSynthesizer:
    """
    Get the configured synthesizer instance.

    Raises:
        ConfigurationError: If OPENAI_API_KEY is not set
    """
    global _synthesizer_instance
    if _synthesizer_instance is not None:
        return _synthesizer_instance

    settings = get_settings()
    _synthesizer_instance = OpenAIReportSynthesizer(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        timeout=settings.synthesis_timeout,
    )
    return _synthesizer_instance


def reset_synthesizer() -> None:
    """Reset the synthesizer instance. Useful for testing."""
    global _synthesizer_instance
    _synthesizer_instance = None
