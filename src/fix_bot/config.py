"""Runtime configuration for the fix pipeline.

Components receive a ``FixBotConfig`` at construction; nothing below the CLI
reads tunables from the environment directly.
"""

import os
import shlex
import sys
import tempfile
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "FIX_BOT_"

DEFAULT_MAX_CHUNK_LINES = 700
DEFAULT_MAX_SELECTED_FILES = 10
DEFAULT_VALIDATION_TIMEOUT = 60
DEFAULT_FAILURE_RETENTION = 24 * 60 * 60
DEFAULT_MAX_REPORTED_ERRORS = 20
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class FixBotConfig(BaseModel):
    """Tunables shared by the selector, chunker, generator and sandbox."""

    model_config = ConfigDict(frozen=True)

    max_chunk_lines: int = Field(default=DEFAULT_MAX_CHUNK_LINES, ge=1)
    max_selected_files: int = Field(default=DEFAULT_MAX_SELECTED_FILES, ge=1)
    validation_timeout_seconds: float = Field(default=DEFAULT_VALIDATION_TIMEOUT, gt=0)
    failure_retention_seconds: float = Field(default=DEFAULT_FAILURE_RETENTION, ge=0)
    temp_root: str = Field(default_factory=tempfile.gettempdir)
    workspace_prefix: str = "mcp-job-"
    quarantine_suffix: str = "-failed"
    max_reported_errors: int = Field(default=DEFAULT_MAX_REPORTED_ERRORS, ge=1)
    tsc_command: list[str] = Field(default_factory=lambda: ["tsc"])
    python_executable: str = Field(default_factory=lambda: sys.executable)
    model: str = DEFAULT_MODEL
    llm_provider: str = "auto"

    @field_validator("llm_provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        if value not in {"auto", "anthropic", "openai"}:
            raise ValueError(f"Unsupported provider: {value}")
        return value

    @field_validator("tsc_command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("tsc_command")
    @classmethod
    def _check_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("tsc_command must not be empty")
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> "FixBotConfig":
        """Build a config from ``FIX_BOT_*`` variables, then apply overrides.

        Overrides whose value is None are ignored so CLI flags can be passed
        through unconditionally.
        """
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
