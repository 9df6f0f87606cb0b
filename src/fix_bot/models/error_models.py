"""Failure categories shared by exceptions and job records."""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure categories produced by the pipeline."""

    SELECTION = "selection"
    GENERATION = "generation"
    VALIDATION_TIMEOUT = "validation_timeout"
    VALIDATION_FAILURE = "validation_failure"
    WORKSPACE_IO = "workspace_io"
