"""Code validator agent: compiles generated files in an isolated workspace."""

import json
import logging
import os
import re
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath

from fix_bot.agents.exceptions import (
    ValidationFailure,
    ValidationTimeout,
    WorkspaceIOError,
)
from fix_bot.config import FixBotConfig
from fix_bot.models import ErrorKind, FileChange, ValidationJob, ValidationStatus
from fix_bot.utils import syntax_check
from fix_bot.utils.cleanup_scheduler import CleanupScheduler, remove_directory

logger = logging.getLogger(__name__)

TYPESCRIPT_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".mts", ".cts"}
SYNTAX_CHECK_EXTENSIONS = {".py", ".pyi", ".json"}
TSCONFIG_NAME = "tsconfig.validation.json"
SYNTAX_CHECK_SCRIPT = Path(syntax_check.__file__).resolve()

SAFE_JOB_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")
DIAGNOSTIC_RE = re.compile(r"\berror (?:TS|E)\d+\b")
AMBIENT_NAME_RE = re.compile(r"Cannot find name '(?:React|process|require)'")
SUPPRESSED_WARNING = "Some import warnings were suppressed"
RAW_OUTPUT_LIMIT = 500


@dataclass
class CheckerRun:
    """Result of one scoped checker subprocess."""

    name: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    diagnostics: list[str] = field(default_factory=list)

    @property
    def output(self) -> str:
        return self.stdout or self.stderr


def is_noise(line: str) -> bool:
    """True for diagnostics expected when checking files without their repo."""
    if "TS2307" in line:
        return True
    if "TS2304" in line and AMBIENT_NAME_RE.search(line):
        return True
    return False


def parse_diagnostics(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if DIAGNOSTIC_RE.search(line)]


def build_tsconfig(include: list[str]) -> dict:
    """Compiler options scoped to ``include`` only, tolerant of missing modules."""
    return {
        "compilerOptions": {
            "target": "ES2017",
            "module": "esnext",
            "lib": ["ES2017", "DOM"],
            "jsx": "react-jsx",
            "strict": False,
            "esModuleInterop": True,
            "skipLibCheck": True,
            "forceConsistentCasingInFileNames": True,
            "moduleResolution": "bundler",
            "resolveJsonModule": True,
            "allowJs": True,
            "noEmit": True,
            "skipDefaultLibCheck": True,
            "allowSyntheticDefaultImports": True,
            "allowImportingTsExtensions": True,
        },
        "include": include,
        "exclude": ["node_modules", "**/*.spec.ts", "**/*.test.ts"],
    }


def raise_for_job(job: ValidationJob) -> ValidationJob:
    """Return ``job`` if it passed, otherwise raise the matching AgentError."""
    if job.valid:
        return job
    message = "; ".join(job.errors) or "Validation did not pass"
    if job.error_kind == ErrorKind.VALIDATION_TIMEOUT:
        raise ValidationTimeout(message, job=job)
    if job.error_kind == ErrorKind.WORKSPACE_IO:
        raise WorkspaceIOError(message)
    raise ValidationFailure(message, job=job)


class CodeValidator:
    """Materializes FileChanges into a per-job workspace and type-checks them.

    Workspaces live at ``<temp_root>/<prefix><job_id>``. A job that passes has
    its workspace removed right away; a job that does not is moved to the
    ``-failed`` sibling, which is kept for the retention window.
    """

    def __init__(
        self,
        config: FixBotConfig | None = None,
        scheduler: CleanupScheduler | None = None,
    ) -> None:
        self.config = config or FixBotConfig()
        self.scheduler = scheduler or CleanupScheduler()
        self.temp_root = Path(self.config.temp_root)

    def workspace_path(self, job_id: str) -> Path:
        return self.temp_root / f"{self.config.workspace_prefix}{job_id}"

    def quarantine_path(self, job_id: str) -> Path:
        return self.temp_root / (
            f"{self.config.workspace_prefix}{job_id}{self.config.quarantine_suffix}"
        )

    def validate(self, files: list[FileChange], job_id: str) -> ValidationJob:
        """Validate generated files in a fresh workspace.

        Flow:
        1. Create the workspace (removing any stale quarantine for this job)
        2. Write every change at its relative path
        3. Run the scoped checkers picked by file extension
        4. Classify diagnostics and settle the workspace lifecycle

        Never raises for validation outcomes; failures are reported on the
        returned job through ``status`` and ``error_kind``.
        """
        job = ValidationJob(job_id=job_id, status=ValidationStatus.ERRORED)
        workspace: Path | None = None

        try:
            if not SAFE_JOB_ID_RE.match(job_id):
                raise WorkspaceIOError(f"Unsafe job id for a workspace name: {job_id!r}")
            # Would share a directory with the quarantine of another job
            if job_id.endswith(self.config.quarantine_suffix):
                raise WorkspaceIOError(
                    f"Job id must not end with {self.config.quarantine_suffix!r}: {job_id!r}"
                )

            workspace = self._create_workspace(job_id)
            job.workspace_path = str(workspace)
            job.checked_files = self._materialize(workspace, files)
            runs = self._run_checkers(workspace, job.checked_files)
        except ValidationTimeout as exc:
            logger.error("Validation of job %s timed out", job_id)
            job.status = ValidationStatus.INVALID
            job.error_kind = ErrorKind.VALIDATION_TIMEOUT
            job.errors = [str(exc)]
            return self._fail(job, workspace)
        except Exception as exc:
            logger.error("Validation error for job %s: %s", job_id, exc)
            job.status = ValidationStatus.ERRORED
            job.error_kind = ErrorKind.WORKSPACE_IO
            job.errors = [str(exc) or type(exc).__name__]
            return self._fail(job, workspace)

        self._classify(job, runs)
        if job.valid:
            logger.info("Validation passed for job %s", job_id)
            self.scheduler.schedule(workspace, 0)
            job.finished_at = datetime.now()
            return job

        logger.error("Validation failed for job %s: %s", job_id, job.errors)
        return self._fail(job, workspace)

    # ------------------------------------------------------------------
    # Workspace lifecycle
    # ------------------------------------------------------------------

    def _create_workspace(self, job_id: str) -> Path:
        workspace = self.workspace_path(job_id)
        quarantine = self.quarantine_path(job_id)
        if workspace.exists():
            raise WorkspaceIOError(f"Workspace already exists for job {job_id}: {workspace}")
        if quarantine.exists():
            logger.warning("Removing stale quarantine %s", quarantine)
            self.scheduler.cancel(quarantine)
            shutil.rmtree(quarantine)
        self.temp_root.mkdir(parents=True, exist_ok=True)
        try:
            workspace.mkdir()
        except FileExistsError as exc:
            raise WorkspaceIOError(f"Workspace already exists for job {job_id}: {workspace}") from exc
        return workspace

    def _materialize(self, workspace: Path, files: list[FileChange]) -> list[str]:
        root = workspace.resolve()
        written: list[str] = []
        for change in files:
            relative = PurePosixPath(change.path.lstrip("/"))
            target = (root / relative).resolve()
            if not target.is_relative_to(root) or target == root:
                raise WorkspaceIOError(f"Path escapes workspace: {change.path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(change.content, encoding="utf-8")
            written.append(relative.as_posix())
        return written

    def _fail(self, job: ValidationJob, workspace: Path | None) -> ValidationJob:
        job.finished_at = datetime.now()
        if workspace is None or not workspace.exists():
            job.workspace_path = None
            return job

        quarantine = self.quarantine_path(job.job_id)
        try:
            if quarantine.exists():
                self.scheduler.cancel(quarantine)
                shutil.rmtree(quarantine)
            os.replace(workspace, quarantine)
        except OSError as exc:
            logger.error("Could not quarantine %s: %s", workspace, exc)
            job.warnings.append(f"Workspace could not be quarantined: {exc}")
            self.scheduler.schedule(workspace, self.config.failure_retention_seconds)
            return job

        job.workspace_path = str(quarantine)
        self.scheduler.schedule(quarantine, self.config.failure_retention_seconds)
        logger.info("Quarantined workspace for job %s at %s", job.job_id, quarantine)
        return job

    def cleanup_workspace(self, path: str | Path) -> bool:
        """Remove a workspace now, dropping any pending cleanup for it."""
        self.scheduler.cancel(path)
        return remove_directory(Path(path))

    def sweep(self, max_age: float | None = None) -> list[Path]:
        """Remove stale job directories left behind by an earlier process.

        Directories under the temp root carrying the workspace prefix whose
        modification time is older than ``max_age`` seconds (default: the
        failure retention window) and that have no pending cleanup are removed.
        """
        age = self.config.failure_retention_seconds if max_age is None else max_age
        cutoff = time.time() - age
        removed: list[Path] = []
        if not self.temp_root.is_dir():
            return removed

        for entry in sorted(self.temp_root.iterdir()):
            if not entry.name.startswith(self.config.workspace_prefix) or not entry.is_dir():
                continue
            if self.scheduler.is_pending(entry):
                continue
            try:
                if entry.stat().st_mtime > cutoff:
                    continue
            except FileNotFoundError:
                continue
            if remove_directory(entry):
                removed.append(entry)
        logger.info("Sweep removed %d stale workspace(s)", len(removed))
        return removed

    # ------------------------------------------------------------------
    # Checkers
    # ------------------------------------------------------------------

    def _run_checkers(self, workspace: Path, paths: list[str]) -> list[CheckerRun]:
        ts_files = [p for p in paths if PurePosixPath(p).suffix.lower() in TYPESCRIPT_EXTENSIONS]
        syntax_files = [p for p in paths if PurePosixPath(p).suffix.lower() in SYNTAX_CHECK_EXTENSIONS]
        unchecked = len(paths) - len(ts_files) - len(syntax_files)
        if unchecked:
            logger.debug("%d file(s) have no checker and were only materialized", unchecked)

        runs: list[CheckerRun] = []
        if ts_files:
            (workspace / TSCONFIG_NAME).write_text(
                json.dumps(build_tsconfig(ts_files), indent=2), encoding="utf-8"
            )
            command = [
                *self.config.tsc_command,
                "--project", TSCONFIG_NAME,
                "--noEmit", "--skipLibCheck", "--noResolve",
            ]
            logger.info("Validating %d file(s) with TypeScript", len(ts_files))
            runs.append(self._run("tsc", command, workspace))
        if syntax_files:
            command = [self.config.python_executable, str(SYNTAX_CHECK_SCRIPT), *syntax_files]
            logger.info("Validating %d file(s) with the syntax checker", len(syntax_files))
            runs.append(self._run("syntax", command, workspace))
        return runs

    def _run(self, name: str, command: list[str], workspace: Path) -> CheckerRun:
        timeout = self.config.validation_timeout_seconds
        try:
            result = subprocess.run(
                command,
                cwd=workspace,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ValidationTimeout(f"{name} validation timed out after {timeout}s") from exc

        return CheckerRun(
            name=name,
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            diagnostics=parse_diagnostics((result.stdout or "") + "\n" + (result.stderr or "")),
        )

    def _classify(self, job: ValidationJob, runs: list[CheckerRun]) -> None:
        errors: list[str] = []
        warnings: list[str] = []

        for run in runs:
            if run.returncode == 0:
                if run.stderr.strip():
                    warnings.append(run.stderr.strip())
                continue

            if not run.diagnostics:
                errors.append(run.output[:RAW_OUTPUT_LIMIT] or f"{run.name} exited with {run.returncode}")
                continue

            kept = [line for line in run.diagnostics if not is_noise(line)]
            if not kept:
                warnings.append(SUPPRESSED_WARNING)
            errors.extend(kept)

        job.warnings = warnings
        if errors:
            job.status = ValidationStatus.INVALID
            job.error_kind = ErrorKind.VALIDATION_FAILURE
            job.errors = errors[: self.config.max_reported_errors]
        else:
            job.status = ValidationStatus.VALID
            job.error_kind = None
            job.errors = []

