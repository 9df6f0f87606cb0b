"""Agent components for the fix bot."""

from fix_bot.agents.exceptions import (
    AgentError,
    ErrorKind,
    GenerationError,
    SelectionError,
    ValidationFailure,
    ValidationTimeout,
    WorkspaceIOError,
)
from fix_bot.agents.change_submitter import ChangeSubmitter, SubmissionResult
from fix_bot.agents.code_validator import CodeValidator
from fix_bot.agents.file_selector import FileSelector
from fix_bot.agents.fix_generator import FixGenerator

__all__ = [
    "AgentError",
    "ChangeSubmitter",
    "CodeValidator",
    "ErrorKind",
    "FileSelector",
    "FixGenerator",
    "GenerationError",
    "SelectionError",
    "SubmissionResult",
    "ValidationFailure",
    "ValidationTimeout",
    "WorkspaceIOError",
]
