"""Models for source snapshots and their line-addressed chunks."""

from pydantic import BaseModel, ConfigDict, model_validator


class SourceFile(BaseModel):
    """Read-only snapshot of a repository file taken at request time."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str


class Chunk(BaseModel):
    """A bounded slice of one file, optionally prefixed with its leading context."""

    model_config = ConfigDict(frozen=True)

    snippet: str
    start_line: int  # 1-based
    end_line: int  # inclusive
    context: str | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "Chunk":
        if self.start_line < 1 or self.start_line > self.end_line:
            raise ValueError(
                f"Invalid chunk range {self.start_line}-{self.end_line}"
            )
        return self

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


class FileChunks(BaseModel):
    """Ordered chunks of a single file."""

    model_config = ConfigDict(frozen=False)

    path: str
    chunks: list[Chunk]
