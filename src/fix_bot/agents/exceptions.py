"""Exceptions for agent operations.

Every pipeline failure maps onto exactly one ``ErrorKind`` so callers can
branch on ``exc.kind`` (or ``ValidationJob.error_kind``) instead of on
exception types or message text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fix_bot.models.error_models import ErrorKind

if TYPE_CHECKING:
    from fix_bot.models.validation_models import ValidationJob


class AgentError(Exception):
    """Base exception for all agent operations."""

    kind: ErrorKind | None = None


class SelectionError(AgentError):
    """Raised when no relevant file could be found or verified."""

    kind = ErrorKind.SELECTION


class GenerationError(AgentError):
    """Raised when the generation service output is empty, incomplete or malformed."""

    kind = ErrorKind.GENERATION


class WorkspaceIOError(AgentError):
    """Raised when materializing, moving or removing a workspace fails."""

    kind = ErrorKind.WORKSPACE_IO


class ValidationFailure(AgentError):
    """Raised by callers that need to surface a non-valid ValidationJob as an error."""

    kind = ErrorKind.VALIDATION_FAILURE

    def __init__(self, message: str, job: ValidationJob | None = None) -> None:
        super().__init__(message)
        self.job = job


class ValidationTimeout(ValidationFailure):
    """Raised when the scoped checker exceeded its time budget."""

    kind = ErrorKind.VALIDATION_TIMEOUT
