"""
Error Reporter for the Exporter

Turns a pipeline failure into a readable report, shows it to the operator and,
when the settings carry both an error-reporting block and a mail server,
emails it.
"""

import logging
import sys
import traceback
from typing import Callable, Optional, TextIO

from utils.config import ExportSettings
from utils.errors import TransferError
from utils.mailer import send_mail

logger = logging.getLogger(__name__)

RED = "\033[31m"
RESET = "\033[0m"


def _origin(error: BaseException) -> Optional[str]:
    frames = traceback.extract_tb(error.__traceback__)
    if not frames:
        return None
    frame = frames[-1]
    return f"{frame.filename}, line {frame.lineno}, in {frame.name}"


def format_report(stage: str, error: BaseException) -> str:
    """
    Build the failure report text.

    Contains the stage, the error type and message, transfer detail when the
    error carries it, the originating location and the full traceback.
    """
    lines = [
        f"Order export failed during {stage}.",
        "",
        f"Error: {type(error).__name__}: {error}",
    ]

    if isinstance(error, TransferError):
        if error.remote_path:
            lines.append(f"Remote path: {error.remote_path}")
        if error.detail:
            lines.append(f"Detail: {error.detail}")

    origin = _origin(error)
    if origin:
        lines.append(f"Location: {origin}")

    if error.__traceback__ is not None:
        lines.append("")
        lines.append("".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip())

    return "\n".join(lines)


class ErrorReporter:
    """Prints failure reports and routes them to email when configured."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        mailer: Callable[..., None] = send_mail,
    ) -> None:
        self.stream = stream
        self.mailer = mailer

    def report(self, stage: str, error: BaseException, settings: Optional[ExportSettings]) -> str:
        """
        Report a failure. Never raises for email delivery problems.

        Args:
            stage: Name of the pipeline stage that failed
            error: The exception that ended the run
            settings: Loaded settings, or None if configuration never loaded

        Returns:
            The report text
        """
        message = format_report(stage, error)

        stream = self.stream or sys.stderr
        stream.write(f"{RED}{message}{RESET}\n")
        stream.flush()

        logger.error("Export failed: stage=%s, error=%s", stage, str(error))

        if settings is not None and settings.can_email:
            self._send(stage, message, settings)

        return message

    def _send(self, stage: str, message: str, settings: ExportSettings) -> None:
        reporting = settings.error_reporting
        subject = reporting.subject_line.replace("{stage}", stage)

        try:
            self.mailer(
                server=settings.email.server,
                to=reporting.recipient,
                sender=reporting.sender,
                subject=subject,
                body=message,
            )
        except Exception as e:
            # Email is best-effort; the report has already been printed
            logger.error(
                "Failed to email error report: to=%s, server=%s, error=%s",
                reporting.recipient, settings.email.server, str(e),
                exc_info=True,
            )
