"""Models exchanged with the generation service."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fix_bot.models.chunk_models import FileChunks


class FileMode(str, Enum):
    """Git tree entry modes."""

    FILE = "100644"
    EXECUTABLE = "100755"
    DIRECTORY = "040000"
    SUBMODULE = "160000"
    SYMLINK = "120000"


class FileChange(BaseModel):
    """Complete replacement content for one repository file."""

    model_config = ConfigDict(frozen=False)

    path: str  # Relative path from repo root
    content: str
    mode: FileMode = FileMode.FILE
    summary: str | None = None


class GenerationRequest(BaseModel):
    """Input of one generation exchange; lives only for a single call."""

    model_config = ConfigDict(frozen=False)

    issue_title: str
    issue_body: str = ""
    files: list[FileChunks] = Field(default_factory=list)

    def paths(self) -> list[str]:
        return [item.path for item in self.files]


class GenerationResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    changes: list[FileChange]
    summary: str
