"""Models describing sandbox validation jobs."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fix_bot.models.error_models import ErrorKind


class ValidationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    ERRORED = "errored"


class ValidationJob(BaseModel):
    """Outcome of validating one set of generated files.

    ``workspace_path`` points at the quarantine directory when the job did not
    pass, at the (already scheduled for removal) primary directory when it did,
    and is None when no workspace was ever created.
    """

    model_config = ConfigDict(frozen=False)

    job_id: str
    workspace_path: str | None = None
    status: ValidationStatus
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error_kind: ErrorKind | None = None
    checked_files: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def valid(self) -> bool:
        return self.status == ValidationStatus.VALID
