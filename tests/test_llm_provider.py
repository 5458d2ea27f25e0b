"""Tests for the OpenAI / Anthropic collaborator adapters with the SDK clients faked out."""

from types import SimpleNamespace
from typing import (
    Any,
    Dict,
    List,
)

import pytest

from mcpilot.agent.llm_provider import (
    AnthropicProvider,
    OpenAIProvider,
    load_provider,
)
from mcpilot.core.schema import (
    Message,
    ToolDefinition,
    ToolResult,
)

TOOLS = [ToolDefinition(name="search", description="Search", input_schema={"type": "object"})]
QUESTION = [Message(role="user", content="AI trends?")]


class Recorder:
    """Captures ``create(**kwargs)`` calls and returns canned responses."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.responses.pop(0)


def _openai(recorder: Recorder) -> OpenAIProvider:
    provider = OpenAIProvider(api_key="sk-test", model="gpt-test")
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=recorder))  # type: ignore[assignment]
    return provider


def _openai_reply(content: str | None, tool_calls: list | None = None) -> Any:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_openai_tool_calls_and_replay() -> None:
    """Function calls are parsed and replayed with their results on continuation."""
    call = SimpleNamespace(
        id="call_1", function=SimpleNamespace(name="search", arguments='{"q": "AI"}')
    )
    recorder = Recorder(_openai_reply(None, [call]), _openai_reply("All done"))
    provider = _openai(recorder)

    first = provider.chat("system text", QUESTION, TOOLS)
    assert first.tool_calls[0].name == "search"
    assert first.tool_calls[0].arguments == {"q": "AI"}
    assert recorder.calls[0]["tools"][0]["function"]["name"] == "search"
    assert recorder.calls[0]["messages"][0] == {"role": "system", "content": "system text"}

    second = provider.continue_with_results(
        "updated", QUESTION, [ToolResult(call_id="call_1", result="found")], first.replay_state, TOOLS
    )
    assert second.final_text == "All done"
    messages = recorder.calls[1]["messages"]
    assert messages[2]["tool_calls"][0]["id"] == "call_1"
    assert messages[3] == {"role": "tool", "tool_call_id": "call_1", "content": "found"}


def test_openai_complete_sends_no_tools() -> None:
    """Single-turn completion omits the tools parameter."""
    recorder = Recorder(_openai_reply("classification"))
    assert _openai(recorder).complete("classify", "Question: hi") == "classification"
    assert "tools" not in recorder.calls[0]


def test_anthropic_tool_use_round_trip() -> None:
    """tool_use blocks become calls; results go back as tool_result blocks."""

    class Block(SimpleNamespace):
        def model_dump(self, exclude_none: bool = False) -> Dict[str, Any]:
            return dict(vars(self))

    reply = SimpleNamespace(
        content=[
            Block(type="text", text="Let me search."),
            Block(type="tool_use", id="tu_1", name="search", input={"q": "AI"}),
        ]
    )
    recorder = Recorder(reply, SimpleNamespace(content=[Block(type="text", text="Done")]))
    provider = AnthropicProvider(api_key="test", model="claude-test")
    provider._client = SimpleNamespace(messages=recorder)  # type: ignore[assignment]

    first = provider.chat("sys", QUESTION, TOOLS)
    assert first.final_text == "Let me search."
    assert first.tool_calls[0].call_id == "tu_1"
    assert recorder.calls[0]["tools"][0]["input_schema"] == {"type": "object"}
    assert recorder.calls[0]["system"] == "sys"

    second = provider.continue_with_results(
        "sys", QUESTION, [ToolResult(call_id="tu_1", result="found")], first.replay_state, TOOLS
    )
    assert second.final_text == "Done"
    last = recorder.calls[1]["messages"][-1]
    assert last["content"][0] == {"type": "tool_result", "tool_use_id": "tu_1", "content": "found"}


def test_unknown_provider() -> None:
    """Only registered backends can be loaded."""
    with pytest.raises(ValueError):
        load_provider("gemini")
