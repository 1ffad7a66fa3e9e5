from __future__ import annotations

import re
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .fetcher import FailureCategory

SUMMARY_LIMIT = 300


class ProcessorError(Exception):
    """Base class for every failure the processor reports."""

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class AuthError(ProcessorError):
    """Missing or invalid credential on an inbound request."""

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message, error_code="AUTH_ERROR")


class ValidationError(ProcessorError):
    """An intake request is missing a field required for processing."""

    def __init__(self, message: str):
        super().__init__(message, error_code="VALIDATION_ERROR")


class FetchError(ProcessorError):
    """The remote source could not be downloaded."""

    def __init__(self, message: str, category: FailureCategory | None = None):
        self.category = category
        super().__init__(message, error_code="FETCH_ERROR")


class SeparationError(ProcessorError):
    def __init__(self, message: str):
        super().__init__(message, error_code="SEPARATION_ERROR")


class PublishError(ProcessorError):
    """Upload or link resolution against remote storage failed."""

    def __init__(self, message: str):
        super().__init__(message, error_code="PUBLISH_ERROR")


class NotifyError(ProcessorError):
    def __init__(self, message: str):
        super().__init__(message, error_code="NOTIFY_ERROR")


class CommandError(ProcessorError):
    """An external process exited non-zero or timed out."""

    def __init__(self, argv: Sequence[str], returncode: int | None, stderr: str):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        program = " ".join(self.argv[:3])
        if returncode is None:
            message = f"{program} timed out"
        else:
            message = f"{program} failed with exit {returncode}"
        super().__init__(message, error_code="COMMAND_ERROR")


def summarize_error(exc: BaseException) -> str:
    if isinstance(exc, ProcessorError):
        summary = f"{exc.error_code}: {exc.message}"
    else:
        summary = f"{type(exc).__name__}: {exc}"
    summary = re.sub(r"\s+", " ", summary).strip()
    if len(summary) > SUMMARY_LIMIT:
        summary = summary[: SUMMARY_LIMIT - 3] + "..."
    return summary
