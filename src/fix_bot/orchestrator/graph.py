"""LangGraph orchestrator graph for the fix pipeline.

Wires FileSelector, the chunker, FixGenerator, CodeValidator and
ChangeSubmitter into a linear StateGraph that halts at the first failing
stage.
"""

import logging
from typing import Callable, Literal

from langgraph.graph import END, START, StateGraph

from fix_bot.agents.change_submitter import ChangeSubmitter
from fix_bot.agents.code_validator import CodeValidator, raise_for_job
from fix_bot.agents.exceptions import AgentError, ValidationFailure
from fix_bot.agents.file_selector import ContentAccessor, FileSelector
from fix_bot.agents.fix_generator import FixGenerator
from fix_bot.config import DEFAULT_MAX_CHUNK_LINES
from fix_bot.models import ErrorKind, FileChunks, GenerationRequest, SourceFile
from fix_bot.orchestrator.exceptions import GraphBuildError
from fix_bot.orchestrator.state import FixState
from fix_bot.utils.chunker import chunk_file_content, comment_prefix_for

logger = logging.getLogger(__name__)


def _failure(node: str, exc: Exception, **updates) -> dict:
    """Build a halting state update from an exception raised inside ``node``."""
    logger.error("%s failed: %s", node, exc)
    kind = exc.kind if isinstance(exc, AgentError) else None
    return {"errors": [f"{node} error: {exc}"], "error_kind": kind, **updates}


def route_after(state: FixState) -> Literal["continue", "halt"]:
    """Halt as soon as any node has recorded an error."""
    if state.get("errors") or state.get("error_kind") is not None:
        return "halt"
    return "continue"


def make_select_node(selector: FileSelector) -> Callable[[FixState], dict]:
    """Factory: returns a node closure that selects the files to fix.

    The closure calls selector.select(...) and returns
    {"selection": FileSelection, "warnings": [...]}.

    On error: returns {"errors": [str], "error_kind": ErrorKind.SELECTION}
    """

    def select_node(state: FixState) -> dict:
        try:
            selection = selector.select(
                owner=state["owner"],
                repo=state["repo"],
                token=state["token"],
                issue_body=state["issue_body"],
                explicit_files=state["explicit_files"],
            )
        except Exception as exc:
            return _failure("select_node", exc, selection=None)

        logger.info(
            "Selected %d file(s) via %s", len(selection.paths), selection.strategy.value
        )
        return {"selection": selection, "warnings": list(selection.warnings)}

    return select_node


def make_fetch_node(accessor: ContentAccessor) -> Callable[[FixState], dict]:
    """Factory: returns a node closure that snapshots the selected files."""

    def fetch_node(state: FixState) -> dict:
        sources: list[SourceFile] = []
        try:
            for path in state["selection"].paths:
                content = accessor.get_file_content(
                    state["owner"], state["repo"], path, state["token"]
                )
                sources.append(SourceFile(path=path, content=content))
        except Exception as exc:
            failure = _failure("fetch_node", exc, sources=[])
            failure["error_kind"] = ErrorKind.SELECTION
            return failure
        return {"sources": sources}

    return fetch_node


def make_chunk_node(max_lines: int = DEFAULT_MAX_CHUNK_LINES) -> Callable[[FixState], dict]:
    """Factory: returns a node closure that chunks every fetched file."""

    def chunk_node(state: FixState) -> dict:
        chunked: list[FileChunks] = []
        for source in state["sources"]:
            chunks = chunk_file_content(
                source.content, max_lines, comment_prefix_for(source.path)
            )
            if len(chunks) > 1:
                logger.info("Split %s into %d chunks", source.path, len(chunks))
            chunked.append(FileChunks(path=source.path, chunks=chunks))
        return {"chunked_files": chunked}

    return chunk_node


def make_generate_node(generator: FixGenerator) -> Callable[[FixState], dict]:
    """Factory: returns a node closure that asks the generator for a fix.

    On error: returns {"errors": [str], "error_kind": ErrorKind.GENERATION,
    "generation": None}
    """

    def generate_node(state: FixState) -> dict:
        request = GenerationRequest(
            issue_title=state["issue_title"],
            issue_body=state["issue_body"],
            files=state["chunked_files"],
        )
        try:
            result = generator.generate(request)
        except Exception as exc:
            failure = _failure("generate_node", exc, generation=None)
            failure["error_kind"] = failure["error_kind"] or ErrorKind.GENERATION
            return failure
        return {"generation": result}

    return generate_node


def make_validate_node(
    validator: CodeValidator,
    submitter: ChangeSubmitter | None = None,
) -> Callable[[FixState], dict]:
    """Factory: returns a node closure that validates the generated changes.

    The closure always stores the ValidationJob. A job that did not pass
    halts the pipeline; when submission was requested the failure is also
    reported on the issue through ``submitter``.
    """

    def validate_node(state: FixState) -> dict:
        job = validator.validate(state["generation"].changes, state["job_id"])
        try:
            raise_for_job(job)
        except AgentError as exc:
            if state["submit"] and submitter is not None and isinstance(exc, ValidationFailure):
                try:
                    submitter.notify_validation_failure(
                        state["owner"], state["repo"], state["issue_number"], job, state["token"]
                    )
                except Exception as notify_exc:
                    logger.warning("Could not post validation failure: %s", notify_exc)
            return _failure("validate_node", exc, validation=job, warnings=list(job.warnings))
        return {"validation": job, "warnings": list(job.warnings)}

    return validate_node


def make_submit_node(submitter: ChangeSubmitter | None) -> Callable[[FixState], dict]:
    """Factory: returns a node closure that opens the draft pull request.

    Does nothing unless ``state["submit"]`` is set.
    """

    def submit_node(state: FixState) -> dict:
        if not state["submit"]:
            logger.info("Submission not requested; leaving changes unsubmitted")
            return {}
        if submitter is None:
            return {"errors": ["submit_node error: no submitter configured"]}
        try:
            submission = submitter.submit(
                owner=state["owner"],
                repo=state["repo"],
                issue_number=state["issue_number"],
                issue_title=state["issue_title"],
                result=state["generation"],
                job=state["validation"],
                token=state["token"],
            )
        except Exception as exc:
            return _failure("submit_node", exc, submission=None)
        return {"submission": submission}

    return submit_node


def build_graph(
    selector: FileSelector,
    accessor: ContentAccessor,
    generator: FixGenerator,
    validator: CodeValidator,
    submitter: ChangeSubmitter | None = None,
    max_chunk_lines: int = DEFAULT_MAX_CHUNK_LINES,
):
    """Build and compile the fix pipeline StateGraph.

    Edge topology:
      START -> select_node -> fetch_node -> chunk_node -> generate_node
            -> validate_node -> submit_node -> END
    Every edge after a fallible node is conditional on route_after and
    goes straight to END on "halt".

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(FixState)

        graph.add_node("select_node", make_select_node(selector))
        graph.add_node("fetch_node", make_fetch_node(accessor))
        graph.add_node("chunk_node", make_chunk_node(max_chunk_lines))
        graph.add_node("generate_node", make_generate_node(generator))
        graph.add_node("validate_node", make_validate_node(validator, submitter))
        graph.add_node("submit_node", make_submit_node(submitter))

        graph.add_edge(START, "select_node")
        stages = [
            ("select_node", "fetch_node"),
            ("fetch_node", "chunk_node"),
            ("chunk_node", "generate_node"),
            ("generate_node", "validate_node"),
            ("validate_node", "submit_node"),
        ]
        for source, target in stages:
            graph.add_conditional_edges(
                source,
                route_after,
                {"continue": target, "halt": END},
            )
        graph.add_edge("submit_node", END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build orchestrator graph: {exc}") from exc
