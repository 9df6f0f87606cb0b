"""CLI entry point for the fix bot."""
import argparse
from dotenv import load_dotenv
import json
import logging
import sys
import traceback
import uuid
from pathlib import Path

from pydantic import ValidationError

from fix_bot.agents.exceptions import AgentError
from fix_bot.config import FixBotConfig
from fix_bot.github.exceptions import GitHubError
from fix_bot.orchestrator.exceptions import OrchestratorError
from fix_bot.utils.diff_generator import count_changed_lines, generate_unified_diff

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_PIPELINE_HALTED = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "owner", "repo", "issue_number", "files", "job_id", "submit",
    "max_chunk_lines", "max_selected_files", "validation_timeout_seconds",
    "failure_retention_seconds", "temp_root", "tsc_command", "model", "llm_provider",
})


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fix-bot",
        description="Generate, validate and propose fixes for GitHub issues",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", parents=[common], help="Run the full pipeline for one issue")
    run.add_argument("owner", type=str, help="Repository owner")
    run.add_argument("repo", type=str, help="Repository name")
    run.add_argument("issue_number", type=int, help="Issue number to fix")
    run.add_argument(
        "--files",
        type=str,
        default="",
        help="Comma-separated file paths to operate on (skips automatic selection)",
    )
    run.add_argument("--job-id", type=str, default="", help="Validation job id (default: generated)")
    run.add_argument(
        "--submit", action="store_true", help="Open a draft pull request when validation passes"
    )
    run.add_argument("--output-json", action="store_true", help="Output results as JSON")
    run.add_argument("--show-diff", action="store_true", help="Print unified diffs of the changes")
    run.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    run.add_argument("--max-chunk-lines", type=int, default=None, help="Maximum lines per chunk")
    run.add_argument("--timeout", type=float, default=None, help="Validation timeout in seconds")
    run.add_argument("--temp-root", type=str, default=None, help="Base directory for workspaces")
    run.add_argument("--model", type=str, default=None, help="Model ID to use")
    run.add_argument(
        "--llm-provider",
        type=str,
        default=None,
        choices=("auto", "anthropic", "openai"),
        help="LLM provider for generation: auto (default), anthropic, or openai",
    )

    chunk = subparsers.add_parser("chunk", parents=[common], help="Preview how a local file would be chunked")
    chunk.add_argument("file", type=str, help="File to chunk")
    chunk.add_argument("--max-lines", type=int, default=None, help="Maximum lines per chunk")
    chunk.add_argument("--output-json", action="store_true", help="Output chunk ranges as JSON")

    validate = subparsers.add_parser("validate", parents=[common], help="Validate local files in a sandbox")
    validate.add_argument("paths", nargs="+", help="Files to validate")
    validate.add_argument("--job-id", type=str, default="", help="Validation job id (default: generated)")
    validate.add_argument("--timeout", type=float, default=None, help="Validation timeout in seconds")
    validate.add_argument("--temp-root", type=str, default=None, help="Base directory for workspaces")
    validate.add_argument("--output-json", action="store_true", help="Output the job as JSON")

    sweep = subparsers.add_parser("sweep", parents=[common], help="Remove stale job workspaces")
    sweep.add_argument("--temp-root", type=str, default=None, help="Base directory for workspaces")
    sweep.add_argument(
        "--max-age", type=float, default=None, help="Minimum age in seconds (default: retention)"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def new_job_id(repo: str, issue_number: int | None = None) -> str:
    """Generate a unique, path-safe job id."""
    safe_repo = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in repo) or "local"
    parts = [safe_repo.strip("-_") or "local"]
    if issue_number is not None:
        parts.append(str(issue_number))
    parts.append(uuid.uuid4().hex[:12])
    return "-".join(parts)


def parse_file_list(raw: str) -> list[str] | None:
    files = [item.strip() for item in (raw or "").split(",") if item.strip()]
    return files or None


def create_agents(config: FixBotConfig) -> dict:
    """Create all agent instances from the resolved config.

    Agent imports are deferred to avoid heavy startup cost for --help
    and --dry-run paths.

    Returns:
        Dict with keys: github, selector, generator, validator, submitter, scheduler.
    """
    # Lazy imports: avoid loading anthropic/openai/langgraph at module level
    from fix_bot.agents.change_submitter import ChangeSubmitter
    from fix_bot.agents.code_validator import CodeValidator
    from fix_bot.agents.file_selector import FileSelector
    from fix_bot.agents.fix_generator import FixGenerator
    from fix_bot.github.client import GitHubClient
    from fix_bot.utils.cleanup_scheduler import CleanupScheduler

    github = GitHubClient()
    scheduler = CleanupScheduler(autostart=False)
    return {
        "github": github,
        "selector": FileSelector(github, github, max_files=config.max_selected_files),
        "generator": FixGenerator(model=config.model, llm_provider=config.llm_provider),
        "validator": CodeValidator(config, scheduler),
        "submitter": ChangeSubmitter(github),
        "scheduler": scheduler,
    }


def format_result_json(result: dict) -> str:
    """Serialize result dict to JSON string.

    Calls .model_dump() on Pydantic model values. Falls back to str()
    for non-serializable types (datetime, Path, etc.) via default=str.
    """

    def _serialize(obj):
        if obj is None:
            return None
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        if isinstance(obj, list):
            return [_serialize(item) for item in obj]
        return obj

    prepared = {k: _serialize(v) for k, v in result.items() if k != "token"}
    return json.dumps(prepared, indent=2, default=str)


def print_diffs(result: dict) -> None:
    generation = result.get("generation")
    if generation is None:
        return
    originals = {source.path: source.content for source in result.get("sources", [])}
    for change in generation.changes:
        print(generate_unified_diff(change.path, originals.get(change.path, ""), change.content))


def print_result_human(result: dict) -> None:
    """Print results in human-readable format."""
    print(f"\n{'='*60}")
    print("Fix Bot Results")
    print(f"{'='*60}")
    print(f"\nIssue: {result['owner']}/{result['repo']}#{result['issue_number']}")

    selection = result.get("selection")
    if selection is not None:
        print(f"\nSelected files ({selection.strategy.value}):")
        for path in selection.paths:
            print(f"  - {path}")

    generation = result.get("generation")
    if generation is not None:
        originals = {source.path: source.content for source in result.get("sources", [])}
        print(f"\nChanges ({len(generation.changes)}):")
        for change in generation.changes:
            diff = generate_unified_diff(
                change.path, originals.get(change.path, ""), change.content
            )
            added, removed = count_changed_lines(diff)
            print(f"  {change.path}: +{added} -{removed}")
        if generation.summary:
            print(f"\nSummary: {generation.summary}")

    job = result.get("validation")
    if job is not None:
        print(f"\nValidation job {job.job_id}: {job.status.value}")
        if job.workspace_path and not job.valid:
            print(f"  Workspace kept at: {job.workspace_path}")

    submission = result.get("submission")
    if submission is not None:
        print(f"\nDraft pull request: {submission.pr_url}")

    warnings = result.get("warnings", [])
    if warnings:
        print(f"\nWarnings ({len(warnings)}):")
        for warning in warnings:
            print(f"  - {warning}")

    errors = result.get("errors", [])
    if errors:
        print(f"\nErrors ({len(errors)}):")
        for err in errors:
            print(f"  - {err}")

    print(f"\n{'='*60}")


def print_job_human(job) -> None:
    print(f"Validation job {job.job_id}: {job.status.value}")
    if job.checked_files:
        print(f"Checked files: {', '.join(job.checked_files)}")
    for error in job.errors:
        print(f"  error: {error}")
    for warning in job.warnings:
        print(f"  warning: {warning}")
    if job.workspace_path and not job.valid:
        print(f"Workspace kept at: {job.workspace_path}")


def determine_exit_code(result: dict) -> int:
    """Determine the exit code from the result dict."""
    if not result.get("errors"):
        return EXIT_SUCCESS
    if result.get("error_kind") is not None:
        return EXIT_PIPELINE_HALTED
    return EXIT_ORCHESTRATOR_ERROR


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Only prints keys in the safe allowlist to prevent secret leakage.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        if key in _SAFE_CONFIG_KEYS:
            print(f"  {key}: {value}")
    print(f"{'='*40}")


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def cmd_run(args: argparse.Namespace, config: FixBotConfig) -> int:
    if args.issue_number < 1:
        print(f"Error: invalid issue number {args.issue_number}.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    job_id = args.job_id or new_job_id(args.repo, args.issue_number)
    files = parse_file_list(args.files)

    if args.dry_run:
        summary = {
            "owner": args.owner,
            "repo": args.repo,
            "issue_number": args.issue_number,
            "files": files,
            "job_id": job_id,
            "submit": args.submit,
            **config.model_dump(),
        }
        if args.output_json:
            safe = {k: v for k, v in summary.items() if k in _SAFE_CONFIG_KEYS}
            print(json.dumps(safe, indent=2, default=str))
        else:
            print_config_human(summary)
        return EXIT_SUCCESS

    agents = create_agents(config)

    from fix_bot.orchestrator.graph import build_graph
    from fix_bot.orchestrator.state import make_initial_state

    github = agents["github"]
    scheduler = agents["scheduler"]
    try:
        issue = github.fetch_issue(args.owner, args.repo, args.issue_number)
        graph = build_graph(
            selector=agents["selector"],
            accessor=github,
            generator=agents["generator"],
            validator=agents["validator"],
            submitter=agents["submitter"],
            max_chunk_lines=config.max_chunk_lines,
        )
        state = make_initial_state(
            owner=args.owner,
            repo=args.repo,
            issue_number=args.issue_number,
            issue_title=issue.get("title", ""),
            issue_body=issue.get("body") or "",
            job_id=job_id,
            explicit_files=files,
            submit=args.submit,
        )
        result = graph.invoke(state)
    finally:
        # Passed workspaces are due immediately; quarantines outlive the process
        scheduler.run_due()
        scheduler.shutdown()
        github.close()

    if args.output_json:
        print(format_result_json(result))
    else:
        print_result_human(result)
        if args.show_diff:
            print_diffs(result)
    return determine_exit_code(result)


def cmd_chunk(args: argparse.Namespace, config: FixBotConfig) -> int:
    from fix_bot.utils.chunker import (
        chunk_file_content,
        comment_prefix_for,
        estimate_tokens,
        preview_chunking,
    )

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: '{args.file}' is not a file.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    content = path.read_text(encoding="utf-8")
    max_lines = args.max_lines or config.max_chunk_lines
    chunks = chunk_file_content(content, max_lines, comment_prefix_for(path.name))

    if args.output_json:
        payload = {
            "path": str(path),
            "max_lines": max_lines,
            "estimated_tokens": estimate_tokens(chunks),
            "chunks": [
                {"start_line": c.start_line, "end_line": c.end_line, "has_context": bool(c.context)}
                for c in chunks
            ],
        }
        print(json.dumps(payload, indent=2))
    else:
        print(preview_chunking(content, max_lines))
        print(f"Estimated tokens: {estimate_tokens(chunks)}")
    return EXIT_SUCCESS


def cmd_validate(args: argparse.Namespace, config: FixBotConfig) -> int:
    from fix_bot.agents.code_validator import CodeValidator
    from fix_bot.models import FileChange
    from fix_bot.utils.cleanup_scheduler import CleanupScheduler

    changes: list[FileChange] = []
    cwd = Path.cwd().resolve()
    for raw in args.paths:
        path = Path(raw)
        if not path.is_file():
            print(f"Error: '{raw}' is not a file.", file=sys.stderr)
            return EXIT_INVALID_INPUT
        resolved = path.resolve()
        relative = resolved.relative_to(cwd) if resolved.is_relative_to(cwd) else Path(resolved.name)
        if any(change.path == relative.as_posix() for change in changes):
            print(
                f"Error: '{raw}' maps to workspace path '{relative.as_posix()}' "
                "which is already taken by another file.",
                file=sys.stderr,
            )
            return EXIT_INVALID_INPUT
        changes.append(
            FileChange(path=relative.as_posix(), content=resolved.read_text(encoding="utf-8"))
        )

    scheduler = CleanupScheduler(autostart=False)
    validator = CodeValidator(config, scheduler)
    job = validator.validate(changes, args.job_id or new_job_id("local"))
    scheduler.run_due()
    scheduler.shutdown()

    if args.output_json:
        print(job.model_dump_json(indent=2))
    else:
        print_job_human(job)
    return EXIT_SUCCESS if job.valid else EXIT_PIPELINE_HALTED


def cmd_sweep(args: argparse.Namespace, config: FixBotConfig) -> int:
    from fix_bot.agents.code_validator import CodeValidator

    removed = CodeValidator(config).sweep(max_age=args.max_age)
    for path in removed:
        print(f"Removed {path}")
    print(f"Removed {len(removed)} stale workspace(s).")
    return EXIT_SUCCESS


COMMANDS = {
    "run": cmd_run,
    "chunk": cmd_chunk,
    "validate": cmd_validate,
    "sweep": cmd_sweep,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = FixBotConfig.from_env(
            max_chunk_lines=getattr(args, "max_chunk_lines", None),
            validation_timeout_seconds=getattr(args, "timeout", None),
            temp_root=getattr(args, "temp_root", None),
            model=getattr(args, "model", None),
            llm_provider=getattr(args, "llm_provider", None),
        )
    except ValidationError as exc:
        return _handle_error("Invalid configuration", exc, args.verbose, EXIT_INVALID_INPUT)

    try:
        return COMMANDS[args.command](args, config)

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except GitHubError as exc:
        return _handle_error("GitHub error", exc, args.verbose, EXIT_AGENT_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)
