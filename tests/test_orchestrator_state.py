"""Tests for the fix pipeline state helpers."""

from fix_bot.orchestrator.state import make_initial_state


def test_initial_state_defaults():
    state = make_initial_state("acme", "web", 3, "Crash on login", "job-1")

    assert state["issue_body"] == ""
    assert state["explicit_files"] is None
    assert state["submit"] is False
    assert state["selection"] is None
    assert state["sources"] == []
    assert state["chunked_files"] == []
    assert state["warnings"] == []
    assert state["errors"] == []
    assert state["error_kind"] is None


def test_empty_explicit_list_means_automatic_selection():
    state = make_initial_state("acme", "web", 3, "t", "job-1", explicit_files=[])
    assert state["explicit_files"] is None


def test_inputs_are_carried():
    state = make_initial_state(
        "acme", "web", 3, "t", "job-1",
        issue_body=None, token="tok", explicit_files=["a.ts"], submit=True,
    )
    assert state["issue_body"] == ""
    assert state["token"] == "tok"
    assert state["explicit_files"] == ["a.ts"]
    assert state["submit"] is True
