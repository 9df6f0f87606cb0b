"""File selector agent: decides which repository files a fix should touch."""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Protocol

from fix_bot.agents.exceptions import SelectionError
from fix_bot.config import DEFAULT_MAX_SELECTED_FILES
from fix_bot.models import FileSelection, SelectionStrategyName

logger = logging.getLogger(__name__)

SELECTABLE_EXTENSIONS = {
    ".ts", ".tsx", ".js", ".jsx", ".py", ".json", ".yml", ".yaml",
    ".md", ".css", ".scss", ".less",
}
SOURCE_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".py"}
SOURCE_DIRECTORIES = ("src/", "app/")
EXCLUDED_DIRECTORIES = {
    "node_modules", "dist", "build", ".next", "coverage", ".git", "__pycache__", ".venv",
}
MIN_KEYWORD_LENGTH = 4
KEYWORD_SCORE = 2
SOURCE_EXTENSION_BONUS = 1
SOURCE_DIRECTORY_BONUS = 1

# Longer alternatives first so "x.json" is not read as "x.js"
FILE_PATH_RE = re.compile(
    r"[\w/.-]*\w\.(?:json|tsx?|jsx?|py|ya?ml|md|css|scss|less)\b", re.IGNORECASE
)
CODE_BLOCK_RE = re.compile(r"```[\w-]*\n(.*?)\n```", re.DOTALL)

NO_FILES_MESSAGE = (
    "Could not automatically select relevant files. "
    "Please list the specific files to change (for example `src/app.tsx`) "
    "in the issue or pass them explicitly."
)


class ContentAccessor(Protocol):
    def get_file_content(
        self, owner: str, repo: str, path: str, token: str | None = None, ref: str | None = None
    ) -> str: ...


class TreeAccessor(Protocol):
    def list_paths(self, owner: str, repo: str, token: str | None = None) -> list[str]: ...


@dataclass
class SelectionContext:
    owner: str
    repo: str
    token: str | None
    issue_body: str
    explicit_files: list[str] | None = None


def _dedupe(paths: list[str]) -> list[str]:
    return list(dict.fromkeys(paths))


def extract_file_paths_from_text(text: str) -> list[str]:
    """Find extension-bearing path tokens in ``text`` and its fenced code blocks."""
    found = [match.group(0).strip() for match in FILE_PATH_RE.finditer(text)]
    for block in CODE_BLOCK_RE.finditer(text):
        found.extend(match.group(0).strip() for match in FILE_PATH_RE.finditer(block.group(1)))
    return _dedupe([path[2:] if path.startswith("./") else path for path in found])


def is_selectable_path(path: str) -> bool:
    """True for files outside build/dependency dirs with a selectable extension."""
    pure = PurePosixPath(path)
    if any(part in EXCLUDED_DIRECTORIES for part in pure.parts[:-1]):
        return False
    return pure.suffix.lower() in SELECTABLE_EXTENSIONS


def score_path(path: str, keywords: list[str]) -> int:
    lower_path = path.lower()
    score = sum(KEYWORD_SCORE for keyword in keywords if keyword in lower_path)
    if PurePosixPath(lower_path).suffix in SOURCE_EXTENSIONS:
        score += SOURCE_EXTENSION_BONUS
    if lower_path.startswith(SOURCE_DIRECTORIES):
        score += SOURCE_DIRECTORY_BONUS
    return score


def issue_keywords(issue_body: str) -> list[str]:
    return [word for word in issue_body.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]


def verify_files_exist(
    accessor: ContentAccessor,
    ctx: SelectionContext,
    paths: list[str],
) -> tuple[list[str], list[str]]:
    """Split ``paths`` into (existing, missing) using the content accessor."""
    existing: list[str] = []
    missing: list[str] = []
    for path in paths:
        try:
            accessor.get_file_content(ctx.owner, ctx.repo, path, ctx.token)
        except Exception as exc:
            logger.debug("File not found or inaccessible: %s (%s)", path, exc)
            missing.append(path)
            continue
        existing.append(path)
    return existing, missing


class ExplicitListStrategy:
    """Use the caller-supplied file list, keeping only files that exist."""

    name = SelectionStrategyName.EXPLICIT

    def __init__(self, accessor: ContentAccessor) -> None:
        self.accessor = accessor

    def select(self, ctx: SelectionContext) -> FileSelection | None:
        requested = _dedupe([path.strip() for path in ctx.explicit_files or [] if path.strip()])
        existing, missing = verify_files_exist(self.accessor, ctx, requested)

        if not existing:
            raise SelectionError(
                "None of the provided files exist in the repository: "
                + ", ".join(requested or ["(empty list)"])
            )

        warnings = [f"Provided file not found and skipped: {path}" for path in missing]
        for warning in warnings:
            logger.warning(warning)
        return FileSelection(paths=existing, strategy=self.name, warnings=warnings)


class TreeScoringStrategy:
    """Rank the repository tree against the issue text."""

    name = SelectionStrategyName.TREE_SCORING

    def __init__(self, tree: TreeAccessor, max_files: int = DEFAULT_MAX_SELECTED_FILES) -> None:
        self.tree = tree
        self.max_files = max_files

    def select(self, ctx: SelectionContext) -> FileSelection | None:
        try:
            all_paths = self.tree.list_paths(ctx.owner, ctx.repo, ctx.token)
        except Exception as exc:
            logger.warning("Tree-based file selection failed, falling back: %s", exc)
            return None

        candidates = [path for path in all_paths if is_selectable_path(path)]
        if not candidates:
            logger.info("Tree-based selection found no candidate files")
            return None

        keywords = issue_keywords(ctx.issue_body)
        # sorted() is stable, so equal scores keep tree order
        ranked = sorted(candidates, key=lambda path: score_path(path, keywords), reverse=True)
        top = ranked[: self.max_files]
        logger.info("Tree-based selection picked %d file(s): %s", len(top), top)
        return FileSelection(paths=top, strategy=self.name)


class KeywordExtractionStrategy:
    """Pick up file paths mentioned in the issue body."""

    name = SelectionStrategyName.KEYWORD_EXTRACTION

    def __init__(self, accessor: ContentAccessor, max_files: int = DEFAULT_MAX_SELECTED_FILES) -> None:
        self.accessor = accessor
        self.max_files = max_files

    def select(self, ctx: SelectionContext) -> FileSelection | None:
        mentioned = extract_file_paths_from_text(ctx.issue_body)
        if not mentioned:
            logger.warning("No file paths found in issue body")
            return None

        existing, missing = verify_files_exist(self.accessor, ctx, mentioned)
        if not existing:
            return None

        warnings = [f"Mentioned file not found and skipped: {path}" for path in missing]
        return FileSelection(
            paths=existing[: self.max_files], strategy=self.name, warnings=warnings
        )


class FileSelector:
    """Selects verified file paths for an issue through an ordered strategy chain.

    An explicit list short-circuits the chain. Otherwise the tree-scoring
    strategy runs first and the keyword-extraction strategy is the last
    resort; if it also comes back empty, selection fails terminally.
    """

    def __init__(
        self,
        content_accessor: ContentAccessor,
        tree_accessor: TreeAccessor,
        max_files: int = DEFAULT_MAX_SELECTED_FILES,
    ) -> None:
        self.explicit = ExplicitListStrategy(content_accessor)
        self.fallback_chain = [
            TreeScoringStrategy(tree_accessor, max_files),
            KeywordExtractionStrategy(content_accessor, max_files),
        ]

    def select(
        self,
        owner: str,
        repo: str,
        token: str | None,
        issue_body: str,
        explicit_files: list[str] | None = None,
    ) -> FileSelection:
        """Return the files to operate on.

        Raises:
            SelectionError: If no file could be selected and verified.
        """
        ctx = SelectionContext(
            owner=owner,
            repo=repo,
            token=token,
            issue_body=issue_body or "",
            explicit_files=explicit_files,
        )

        if explicit_files:
            return self.explicit.select(ctx)

        for strategy in self.fallback_chain:
            selection = strategy.select(ctx)
            if selection is not None and selection.paths:
                return selection
            logger.info("Selection strategy '%s' produced nothing", strategy.name.value)

        raise SelectionError(NO_FILES_MESSAGE)
