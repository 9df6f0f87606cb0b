"""Data models for the fix bot."""

from fix_bot.models.change_models import (
    FileChange,
    FileMode,
    GenerationRequest,
    GenerationResult,
)
from fix_bot.models.chunk_models import Chunk, FileChunks, SourceFile
from fix_bot.models.error_models import ErrorKind
from fix_bot.models.selection_models import FileSelection, SelectionStrategyName
from fix_bot.models.validation_models import ValidationJob, ValidationStatus

__all__ = [
    "Chunk",
    "ErrorKind",
    "FileChange",
    "FileChunks",
    "FileMode",
    "FileSelection",
    "GenerationRequest",
    "GenerationResult",
    "SelectionStrategyName",
    "SourceFile",
    "ValidationJob",
    "ValidationStatus",
]
