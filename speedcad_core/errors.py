"""Error taxonomy shared by the pure core and the async controllers.

Every failure surfaced to a caller is one of these kinds so the UI layer can
show a specific message:

- ValidationError: bad input or admission policy, raised before any I/O
- InvalidTransition: clock command not allowed from the current status
- ConflictError: second submission for an identity that already submitted
- NotFoundError: submission for an identity that never registered
- TransientIOError: store/storage unreachable or timed out (retryable)
- PartialFailure: artifact uploaded but the participant row was not updated
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class CompetitionError(Exception):
    """Base class; carries a machine-readable kind and an HTTP-ish status."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.kind)
        self.message = message


class ValidationError(CompetitionError, ValueError):
    kind = "validation"
    status_code = 400


class InvalidTransition(ValidationError):
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, command: str, status: str):
        super().__init__(f"{command} is not allowed while competition is {status}")
        self.command = command
        self.status = status


class ConflictError(CompetitionError):
    kind = "conflict"
    status_code = 409


class NotFoundError(CompetitionError):
    kind = "not_found"
    status_code = 404


class TransientIOError(CompetitionError):
    kind = "transient_io"
    status_code = 503

    def __init__(self, operation: str, message: str | None = None):
        super().__init__(message or f"{operation} failed")
        self.operation = operation


class PartialFailure(CompetitionError):
    """Upload succeeded but metadata update failed; file_url is retained."""

    kind = "partial_failure"
    status_code = 502

    def __init__(self, file_url: str, message: str | None = None):
        super().__init__(message or "Submission file stored but record not updated")
        self.file_url = file_url


_MESSAGES = {
    "validation": "Please check your input: {detail}",
    "invalid_transition": "{detail}",
    "conflict": "You have already submitted.",
    "not_found": "Participant not found. Please register first.",
    "transient_io": "Service temporarily unavailable. Please try again.",
    "partial_failure": "Your file was uploaded but the submission was not saved. Please retry saving.",
}


def describe_error(exc: BaseException) -> str:
    """Map an exception to a user-facing message, generic for unknown errors."""
    if isinstance(exc, CompetitionError):
        template = _MESSAGES.get(exc.kind)
        if template:
            return template.format(detail=exc.message or exc.kind)
    logger.debug(f"Unclassified error surfaced to user: {exc!r}")
    return "Something went wrong. Please try again."


__all__ = [
    "CompetitionError",
    "ValidationError",
    "InvalidTransition",
    "ConflictError",
    "NotFoundError",
    "TransientIOError",
    "PartialFailure",
    "describe_error",
]
