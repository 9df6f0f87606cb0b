"""Tests for agent exception classes."""

import pytest

from fix_bot.agents.exceptions import (
    AgentError,
    ErrorKind,
    GenerationError,
    SelectionError,
    ValidationFailure,
    ValidationTimeout,
    WorkspaceIOError,
)
from fix_bot.models import ValidationJob, ValidationStatus
from fix_bot.orchestrator.exceptions import GraphBuildError, OrchestratorError


class TestAgentExceptions:
    """Tests for agent exception hierarchy."""

    def test_agent_error_has_no_kind(self):
        exc = AgentError("Base error")
        assert isinstance(exc, Exception)
        assert str(exc) == "Base error"
        assert exc.kind is None

    @pytest.mark.parametrize(
        "exc_type,kind",
        [
            (SelectionError, ErrorKind.SELECTION),
            (GenerationError, ErrorKind.GENERATION),
            (ValidationFailure, ErrorKind.VALIDATION_FAILURE),
            (ValidationTimeout, ErrorKind.VALIDATION_TIMEOUT),
            (WorkspaceIOError, ErrorKind.WORKSPACE_IO),
        ],
    )
    def test_each_error_carries_its_kind(self, exc_type, kind):
        exc = exc_type("failed")
        assert isinstance(exc, AgentError)
        assert exc.kind == kind
        assert str(exc) == "failed"

    def test_validation_failure_carries_job(self):
        job = ValidationJob(job_id="j1", status=ValidationStatus.INVALID)
        exc = ValidationFailure("diagnostics remain", job=job)
        assert exc.job is job

    def test_validation_timeout_is_a_validation_failure(self):
        exc = ValidationTimeout("too slow")
        assert isinstance(exc, ValidationFailure)
        assert exc.job is None

    def test_error_kind_values_are_closed(self):
        assert {kind.value for kind in ErrorKind} == {
            "selection",
            "generation",
            "validation_timeout",
            "validation_failure",
            "workspace_io",
        }


class TestOrchestratorExceptions:
    def test_graph_build_error_inherits(self):
        exc = GraphBuildError("bad graph")
        assert isinstance(exc, OrchestratorError)
        assert not isinstance(exc, AgentError)
