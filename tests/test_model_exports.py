import pytest
from pydantic import ValidationError

from fix_bot.models import Chunk, ErrorKind, FileChange, FileMode, ValidationJob, ValidationStatus
from fix_bot.models.error_models import ErrorKind as CoreErrorKind
from fix_bot.agents.exceptions import ValidationTimeout


def test_error_kind_is_shared():
    assert ErrorKind is CoreErrorKind
    assert ValidationTimeout.kind is ErrorKind.VALIDATION_TIMEOUT


def test_chunk_rejects_inverted_range():
    with pytest.raises(ValidationError):
        Chunk(snippet="x", start_line=5, end_line=4)
    with pytest.raises(ValidationError):
        Chunk(snippet="x", start_line=0, end_line=1)
    assert Chunk(snippet="x", start_line=2, end_line=4).line_count == 3


def test_file_change_defaults_to_regular_file():
    assert FileChange(path="a.ts", content="x").mode is FileMode.FILE


def test_validation_job_valid_property():
    assert ValidationJob(job_id="j", status=ValidationStatus.VALID).valid
    assert not ValidationJob(job_id="j", status=ValidationStatus.ERRORED).valid
