"""Report delivery by email."""

import asyncio
import html as html_lib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import resend
from jinja2 import Environment, FileSystemLoader
from sqlalchemy.ext.asyncio import AsyncSession

from reporter.config import get_config, get_settings
from reporter.core.exceptions import DeliveryError
from reporter.core.logging import get_logger
from reporter.models.delivery_log import DeliveryLog
from reporter.schemas.report import ReportArtifact

logger = get_logger(__name__)

# Initialize Jinja2 environment for email templates
template_dir = Path(__file__).parent.parent / "emails" / "templates"
jinja_env = Environment(loader=FileSystemLoader(template_dir), autoescape=True)


@dataclass
class DeliveryResult:
    """Outcome of one transport call."""

    success: bool
    error: str | None = None


class BaseTransport(ABC):
    """Abstract base class for message transports."""

    provider_name: str = "unknown"

    @abstractmethod
    async def send(self, to: str, subject: str, text: str, html: str) -> DeliveryResult:
        """
        Send one message.

        Args:
            to: Recipient address
            subject: Subject line
            text: Plain text body
            html: HTML body

        Returns:
            DeliveryResult; transports report failures instead of raising
        """
        pass


class ResendTransport(BaseTransport):
    """Transport backed by the Resend API."""

    provider_name = "resend"

    def __init__(self, api_key: str, sender: str, timeout: float = 30.0) -> None:
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    async def send(self, to: str, subject: str, text: str, html: str) -> DeliveryResult:
        if not self.api_key:
            logger.bind(to=to).warning("resend_api_key_not_set")
            return DeliveryResult(
                success=False,
                error="Email delivery is not configured. Please set RESEND_API_KEY.",
            )

        resend.api_key = self.api_key
        params = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
            "html": html,
        }

        try:
            async with asyncio.timeout(self.timeout):
                await asyncio.to_thread(resend.Emails.send, params)
        except TimeoutError:
            return DeliveryResult(success=False, error="Failed to send email: timed out")
        except Exception as e:
            return DeliveryResult(success=False, error=f"Failed to send email: {e}")

        return DeliveryResult(success=True)


def get_transport() -> BaseTransport:
    """Build the configured transport."""
    settings = get_settings()
    config = get_config()
    return ResendTransport(
        api_key=settings.resend_api_key,
        sender=f"{config.delivery.sender_name} <reports@{settings.email_domain}>",
        timeout=settings.delivery_timeout,
    )


def render_report_email(task_name: str, artifact: ReportArtifact) -> tuple[str, str]:
    """
    Render the plain text and HTML bodies for a report email.

    Returns:
        Tuple of (text, html)
    """
    text = f'Your scheduled report "{task_name}" is attached.\n\n{artifact.content}'

    try:
        template = jinja_env.get_template("scheduled_report.html")
        html = template.render(
            task_name=task_name,
            file_name=artifact.file_name,
            report_format=artifact.format,
            report_content=artifact.content,
        )
    except Exception:
        # Fallback to simple HTML if template not found
        html = f"""
        <html>
        <body style="font-family: sans-serif; padding: 20px;">
            <p>Your scheduled report "<strong>{html_lib.escape(task_name)}</strong>" is complete.</p>
            <hr/>
            <pre>{html_lib.escape(artifact.content)}</pre>
        </body>
        </html>
        """

    return text, html


async def deliver_report(
    db: AsyncSession,
    to: str,
    task_name: str,
    artifact: ReportArtifact,
    transport: BaseTransport | None = None,
) -> None:
    """
    Email a generated report and record the attempt.

    Args:
        db: Database session for the delivery log
        to: Recipient address
        task_name: Name of the task that produced the report
        artifact: Generated report
        transport: Transport override (defaults to get_transport())

    Raises:
        DeliveryError: If the transport reports a failure or raises
    """
    transport = transport or get_transport()
    subject = get_config().delivery.subject_template.format(task_name=task_name)
    text, html = render_report_email(task_name, artifact)

    logger.bind(to=to, task_name=task_name, provider=transport.provider_name).info("sending_report")
    send_error: Exception | None = None
    try:
        result = await transport.send(to, subject, text, html)
    except Exception as e:
        # Any transport error counts as a failed delivery
        send_error = e
        result = DeliveryResult(success=False, error=f"Failed to send email: {e}")

    db.add(
        DeliveryLog(
            to=to,
            subject=subject,
            status="sent" if result.success else "failed",
            error=result.error,
        )
    )
    await db.flush()

    if not result.success:
        logger.bind(to=to, task_name=task_name, error=result.error).error("report_delivery_failed")
        raise DeliveryError(result.error or "Failed to send email.") from send_error

    logger.bind(to=to, task_name=task_name).info("report_sent")
