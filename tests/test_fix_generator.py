"""Tests for FixGenerator agent."""

import json
from unittest.mock import MagicMock, patch

import pytest

from fix_bot.agents.exceptions import AgentError, GenerationError
from fix_bot.agents.fix_generator import (
    OPENAI_DEFAULT_MODEL,
    PLACEHOLDER_MARKERS,
    TOOL_NAME,
    FixGenerator,
    find_placeholder,
    render_file_for_prompt,
)
from fix_bot.models import Chunk, FileChunks, FileMode, GenerationRequest


# --- Helpers ---


def _tool_use_response(payload: dict, name: str = TOOL_NAME) -> MagicMock:
    block = MagicMock()
    block.type = "tool_use"
    block.name = name
    block.input = payload
    response = MagicMock()
    response.content = [block]
    return response


def _openai_response(arguments: str) -> MagicMock:
    tool_call = MagicMock()
    tool_call.function.arguments = arguments
    message = MagicMock()
    message.tool_calls = [tool_call]
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    return response


def _request(path: str = "src/app.ts") -> GenerationRequest:
    return GenerationRequest(
        issue_title="Login button does nothing",
        issue_body="Clicking login has no effect.",
        files=[
            FileChunks(
                path=path,
                chunks=[Chunk(snippet="export const login = () => false;\n", start_line=1, end_line=2)],
            )
        ],
    )


# --- Fixtures ---


@pytest.fixture
def generator(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    gen = FixGenerator(api_key="test-key")
    gen._anthropic_client = MagicMock()
    return gen


# --- Init tests ---


def test_init_without_keys_raises(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(AgentError, match="No Anthropic or OpenAI API key"):
        FixGenerator()


@patch("fix_bot.agents.fix_generator.openai.OpenAI")
@patch("fix_bot.agents.fix_generator.Anthropic")
def test_init_prefers_anthropic_in_auto(mock_anthropic, mock_openai, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")
    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    gen = FixGenerator()
    assert gen._provider() == "anthropic"
    mock_anthropic.assert_called_once_with(api_key="anthropic-key")


@patch("fix_bot.agents.fix_generator.openai.OpenAI")
def test_init_openai_only(mock_openai, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    gen = FixGenerator(openai_api_key="openai-key")
    assert gen._provider() == "openai"
    assert gen._resolve_model("openai") == OPENAI_DEFAULT_MODEL


def test_init_requested_provider_without_key_raises(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(AgentError, match="llm_provider=openai"):
        FixGenerator(api_key="test-key", llm_provider="openai")


def test_init_unknown_provider_raises():
    with pytest.raises(AgentError, match="Unsupported provider"):
        FixGenerator(api_key="test-key", llm_provider="gemini")


# --- Prompt rendering ---


def test_render_single_chunk_is_verbatim():
    file = FileChunks(path="a.ts", chunks=[Chunk(snippet="const a = 1;", start_line=1, end_line=1)])
    assert render_file_for_prompt(file) == "const a = 1;"


def test_render_multiple_chunks_adds_range_headers():
    file = FileChunks(
        path="big.py",
        chunks=[
            Chunk(snippet="import os", start_line=1, end_line=700),
            Chunk(snippet="import os\n\ndef later():\n    pass", start_line=701, end_line=900, context="import os"),
        ],
    )
    rendered = render_file_for_prompt(file)
    assert rendered.startswith("# Lines 1-700\n")
    assert "# ... Lines 701-900 ..." in rendered


def test_prompt_contains_issue_and_files(generator):
    prompt = generator._build_prompt(_request())
    assert "Login button does nothing" in prompt
    assert "File: src/app.ts" in prompt
    assert "COMPLETE file contents" in prompt


# --- Generation (Anthropic) ---


def test_generate_returns_changes(generator):
    generator._anthropic_client.messages.create.return_value = _tool_use_response(
        {
            "changes": [
                {
                    "path": "src/app.ts",
                    "content": "export const login = () => true;\n",
                    "summary": "Return true",
                }
            ],
            "overall_summary": "Fix login",
        }
    )
    result = generator.generate(_request())

    assert result.summary == "Fix login"
    assert len(result.changes) == 1
    assert result.changes[0].mode == FileMode.FILE
    kwargs = generator._anthropic_client.messages.create.call_args.kwargs
    assert kwargs["tool_choice"] == {"type": "tool", "name": TOOL_NAME}
    assert kwargs["tools"][0]["name"] == TOOL_NAME


def test_generate_makes_exactly_one_call(generator):
    generator._anthropic_client.messages.create.side_effect = RuntimeError("overloaded")
    with pytest.raises(GenerationError, match="overloaded"):
        generator.generate(_request())
    assert generator._anthropic_client.messages.create.call_count == 1


@pytest.mark.parametrize("marker", PLACEHOLDER_MARKERS)
def test_generate_rejects_placeholders(generator, marker):
    generator._anthropic_client.messages.create.return_value = _tool_use_response(
        {
            "changes": [{"path": "src/app.ts", "content": f"const a = 1;\n{marker}\n"}],
            "overall_summary": "partial",
        }
    )
    with pytest.raises(GenerationError, match="placeholder"):
        generator.generate(_request())


@pytest.mark.parametrize("content", ["", "   \n\t"])
def test_generate_rejects_empty_content(generator, content):
    generator._anthropic_client.messages.create.return_value = _tool_use_response(
        {"changes": [{"path": "src/app.ts", "content": content}], "overall_summary": "x"}
    )
    with pytest.raises(GenerationError, match="empty"):
        generator.generate(_request())


def test_generate_rejects_unrequested_path(generator):
    generator._anthropic_client.messages.create.return_value = _tool_use_response(
        {"changes": [{"path": "src/other.ts", "content": "x"}], "overall_summary": "x"}
    )
    with pytest.raises(GenerationError, match="not requested"):
        generator.generate(_request())


def test_generate_rejects_empty_change_list(generator):
    generator._anthropic_client.messages.create.return_value = _tool_use_response(
        {"changes": [], "overall_summary": "nothing"}
    )
    with pytest.raises(GenerationError, match="No file changes"):
        generator.generate(_request())


def test_generate_rejects_missing_tool_call(generator):
    text_block = MagicMock()
    text_block.type = "text"
    response = MagicMock()
    response.content = [text_block]
    generator._anthropic_client.messages.create.return_value = response
    with pytest.raises(GenerationError, match="No tool_use block"):
        generator.generate(_request())


def test_generate_rejects_malformed_change(generator):
    generator._anthropic_client.messages.create.return_value = _tool_use_response(
        {"changes": [{"content": "x"}], "overall_summary": "x"}
    )
    with pytest.raises(GenerationError, match="Malformed"):
        generator.generate(_request())


def test_generate_rejects_request_without_files(generator):
    with pytest.raises(GenerationError):
        generator.generate(GenerationRequest(issue_title="t", files=[]))


def test_find_placeholder():
    assert find_placeholder("a\n// rest of file...\n") == "// rest of file..."
    assert find_placeholder("complete file") is None


# --- Generation (OpenAI) ---


@patch("fix_bot.agents.fix_generator.openai.OpenAI")
def test_generate_with_openai(mock_openai, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    client = MagicMock()
    mock_openai.return_value = client
    client.chat.completions.create.return_value = _openai_response(
        json.dumps(
            {
                "changes": [{"path": "src/app.ts", "content": "export const login = () => true;\n"}],
                "overall_summary": "Fix login",
            }
        )
    )

    gen = FixGenerator(openai_api_key="openai-key", llm_provider="openai")
    result = gen.generate(_request())

    assert result.changes[0].path == "src/app.ts"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == OPENAI_DEFAULT_MODEL
    assert kwargs["tools"][0]["function"]["name"] == TOOL_NAME


@patch("fix_bot.agents.fix_generator.openai.OpenAI")
def test_generate_with_openai_invalid_json(mock_openai, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    client = MagicMock()
    mock_openai.return_value = client
    client.chat.completions.create.return_value = _openai_response("{not json")

    gen = FixGenerator(openai_api_key="openai-key")
    with pytest.raises(GenerationError, match="not valid JSON"):
        gen.generate(_request())
