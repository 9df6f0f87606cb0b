"""Models for file selection results."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SelectionStrategyName(str, Enum):
    """Strategies of the selection chain, in priority order."""

    EXPLICIT = "explicit"
    TREE_SCORING = "tree_scoring"
    KEYWORD_EXTRACTION = "keyword_extraction"


class FileSelection(BaseModel):
    model_config = ConfigDict(frozen=False)

    paths: list[str]
    strategy: SelectionStrategyName
    warnings: list[str] = Field(default_factory=list)
