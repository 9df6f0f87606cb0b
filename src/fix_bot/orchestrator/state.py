"""State definition for the LangGraph fix pipeline."""

import operator
from typing import Annotated, TypedDict

from fix_bot.agents.change_submitter import SubmissionResult
from fix_bot.models import (
    ErrorKind,
    FileChunks,
    FileSelection,
    GenerationResult,
    SourceFile,
    ValidationJob,
)


class FixState(TypedDict):
    """State for the LangGraph fix orchestrator.

    Fields with Annotated[list, operator.add] reducers accumulate across nodes.
    All other fields use default overwrite semantics.
    """

    # Input
    owner: str
    repo: str
    issue_number: int
    issue_title: str
    issue_body: str
    token: str | None
    explicit_files: list[str] | None
    job_id: str
    submit: bool

    # Selection
    selection: FileSelection | None

    # Sources and chunking
    sources: list[SourceFile]
    chunked_files: list[FileChunks]

    # Generation and validation
    generation: GenerationResult | None
    validation: ValidationJob | None

    # Submission
    submission: SubmissionResult | None

    # Accumulated diagnostics
    warnings: Annotated[list[str], operator.add]
    errors: Annotated[list[str], operator.add]
    error_kind: ErrorKind | None


def make_initial_state(
    owner: str,
    repo: str,
    issue_number: int,
    issue_title: str,
    job_id: str,
    issue_body: str = "",
    token: str | None = None,
    explicit_files: list[str] | None = None,
    submit: bool = False,
) -> FixState:
    """Create the initial state for the fix pipeline.

    Args:
        owner: Repository owner.
        repo: Repository name.
        issue_number: Issue being fixed.
        issue_title: Issue title, passed to the generator.
        job_id: Unique id naming the validation workspace.
        issue_body: Issue description; drives automatic file selection.
        token: Optional GitHub token overriding the client default.
        explicit_files: Files to operate on instead of automatic selection.
        submit: Open a draft pull request once validation passes.

    Returns:
        FixState dict with all fields initialised to defaults.
    """
    return {
        "owner": owner,
        "repo": repo,
        "issue_number": issue_number,
        "issue_title": issue_title,
        "issue_body": issue_body or "",
        "token": token,
        "explicit_files": explicit_files or None,
        "job_id": job_id,
        "submit": submit,
        "selection": None,
        "sources": [],
        "chunked_files": [],
        "generation": None,
        "validation": None,
        "submission": None,
        "warnings": [],
        "errors": [],
        "error_kind": None,
    }
