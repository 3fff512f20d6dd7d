"""Tests for LLM report synthesis."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from reporter.core.exceptions import ConfigurationError, SynthesisError
from reporter.models.template import ReportTemplate
from reporter.schemas.llm import ReportSynthesisOutput
from reporter.schemas.report import ChartOptions, DataRow, FetchCriteria, OutputOptions
from reporter.services.report_synthesizer import (
    OpenAIReportSynthesizer,
    build_user_prompt,
    format_rows,
)

pytestmark = pytest.mark.asyncio

TS = datetime(2026, 3, 1, 8, 30)


@pytest.fixture
def report_inputs():
    rows = [
        DataRow(
            id=DataRow.make_id("Temperature", TS),
            timestamp=TS,
            machine="M1",
            parameter="Temperature",
            value=71.5,
        )
    ]
    template = ReportTemplate(
        name="Daily Production",
        category="Production",
        description="Output and efficiency per machine",
    )
    criteria = FetchCriteria(
        date_from=datetime(2026, 2, 28, 8, 30),
        date_to=TS,
        entity_ids=["M1"],
    )
    chart = ChartOptions(chart_title="Daily Production - 2026-03-01")
    output = OutputOptions(format="pdf", file_name="Shift_Report_2026-03-01T08:30:00")
    return rows, template, criteria, chart, output


def _mock_client(parsed: ReportSynthesisOutput | None) -> AsyncMock:
    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.parsed = parsed
    mock_response.usage = MagicMock()
    mock_response.usage.prompt_tokens = 400
    mock_response.usage.completion_tokens = 200
    mock_client.beta.chat.completions.parse = AsyncMock(return_value=mock_response)
    return mock_client


class TestBuildUserPrompt:
    """Tests for prompt construction."""

    def test_formats_rows(self, report_inputs):
        rows = report_inputs[0]

        formatted = format_rows(rows)

        assert formatted[0].timestamp == "2026-03-01 08:30:00"
        assert formatted[0].value == "71.5"
        assert formatted[0].unit == "N/A"

    def test_pdf_prompt_has_sections(self, report_inputs):
        prompt = build_user_prompt(*report_inputs)

        assert "## Executive Summary" in prompt
        assert "Machines analyzed: M1" in prompt
        assert "All available" in prompt
        assert "2026-03-01 08:30:00 | M1 | Temperature | 71.5 | N/A" in prompt

    def test_csv_prompt(self, report_inputs):
        rows, template, criteria, chart, _ = report_inputs
        output = OutputOptions(format="csv", file_name="export")

        prompt = build_user_prompt(rows, template, criteria, chart, output)

        assert "Timestamp,Machine,Parameter,Value,Unit" in prompt
        assert "## Executive Summary" not in prompt


class TestOpenAIReportSynthesizer:
    """Tests for OpenAIReportSynthesizer."""

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            OpenAIReportSynthesizer(api_key="")

    async def test_returns_artifact_with_extension(self, report_inputs):
        """Should append .md for pdf output."""
        client = _mock_client(
            ReportSynthesisOutput(
                report_content="# Shift report",
                file_name="Shift_Report",
                format="pdf",
            )
        )
        synthesizer = OpenAIReportSynthesizer(api_key="test", client=client)

        artifact = await synthesizer.generate(*report_inputs)

        assert artifact.content == "# Shift report"
        assert artifact.file_name == "Shift_Report.md"
        assert artifact.format == "pdf"
        client.beta.chat.completions.parse.assert_awaited_once()

    async def test_csv_extension(self, report_inputs):
        client = _mock_client(
            ReportSynthesisOutput(report_content="Timestamp,Machine", file_name="x.csv", format="csv")
        )
        synthesizer = OpenAIReportSynthesizer(api_key="test", client=client)

        artifact = await synthesizer.generate(*report_inputs)

        assert artifact.file_name == "x.csv"

    async def test_empty_result_raises(self, report_inputs):
        synthesizer = OpenAIReportSynthesizer(api_key="test", client=_mock_client(None))

        with pytest.raises(SynthesisError):
            await synthesizer.generate(*report_inputs)

    async def test_provider_error_raises(self, report_inputs):
        client = AsyncMock()
        client.beta.chat.completions.parse = AsyncMock(side_effect=OpenAIError("model overloaded"))
        synthesizer = OpenAIReportSynthesizer(api_key="test", client=client)

        with pytest.raises(SynthesisError) as exc_info:
            await synthesizer.generate(*report_inputs)

        assert "model overloaded" in str(exc_info.value)
