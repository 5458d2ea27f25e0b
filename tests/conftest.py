"""Shared fakes: an in-memory MCP server client and a scripted LLM collaborator."""

from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Sequence,
)

import pytest

from mcpilot.agent.llm_provider import LLMProvider
from mcpilot.core.schema import (
    LLMResponse,
    Message,
    PromptArgument,
    PromptDescriptor,
    ResourceDescriptor,
    ServerDescriptor,
    ToolCall,
    ToolDefinition,
    ToolDescriptor,
    ToolResult,
)
from mcpilot.mcp.registry import CapabilityRegistry


class FakeClient:
    """Stands in for :class:`MCPClient`; records every dispatched call."""

    def __init__(
        self,
        url: str = "http://fake/mcp",
        tools: Dict[str, str] | None = None,
        prompts: Dict[str, List[Dict[str, Any]]] | None = None,
        prompt_args: Dict[str, List[PromptArgument]] | None = None,
        resources: Dict[str, str] | None = None,
    ) -> None:
        self.url = url
        self.tools = tools or {}
        self.prompts = prompts or {}
        self.prompt_args = prompt_args or {}
        self.resources = resources or {}
        self.tool_calls: List[tuple] = []
        self.prompt_calls: List[tuple] = []

    def discover(self) -> ServerDescriptor:
        return ServerDescriptor(
            url=self.url,
            name="fake",
            version="1.0",
            capabilities={"tools": {}, "prompts": {}, "resources": {}},
            tools=[ToolDescriptor(name=n, description=f"{n} tool") for n in self.tools],
            prompts=[
                PromptDescriptor(
                    name=n, description=f"{n} template", arguments=self.prompt_args.get(n, [])
                )
                for n in self.prompts
            ],
            resources=[ResourceDescriptor(uri=u) for u in self.resources],
        )

    def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> str:
        self.tool_calls.append((name, dict(arguments or {})))
        return self.tools[name]

    def get_prompt(self, name: str, arguments: Mapping[str, Any] | None = None) -> List[Dict]:
        self.prompt_calls.append((name, dict(arguments or {})))
        return self.prompts[name]

    def read_resource(self, uri: str) -> str:
        return self.resources[uri]

    def __repr__(self) -> str:
        return f"FakeClient({self.url!r})"


class ScriptedProvider(LLMProvider):
    """Replays queued responses; ``complete`` replies come from a separate queue."""

    def __init__(
        self,
        turns: Sequence[LLMResponse] = (),
        completions: Sequence[str] = (),
    ) -> None:
        self.turns = list(turns)
        self.completions = list(completions)
        self.chat_prompts: List[str | None] = []
        self.results: List[List[ToolResult]] = []
        self.complete_calls: List[tuple] = []

    def _next_turn(self) -> LLMResponse:
        return self.turns.pop(0) if self.turns else LLMResponse(final_text="done")

    def chat(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        self.chat_prompts.append(system_instruction)
        return self._next_turn()

    def continue_with_results(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        results: Sequence[ToolResult],
        replay_state: Sequence[Any],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        self.chat_prompts.append(system_instruction)
        self.results.append(list(results))
        return self._next_turn()

    def complete(self, system_instruction: str | None, user_message: str) -> str:
        self.complete_calls.append((system_instruction, user_message))
        return self.completions.pop(0) if self.completions else ""


def calls(*specs: tuple) -> LLMResponse:
    """Build a turn requesting ``(name, arguments)`` calls with sequential ids."""
    return LLMResponse(
        tool_calls=[
            ToolCall(call_id=f"call_{i}", name=name, arguments=args)
            for i, (name, args) in enumerate(specs)
        ]
    )


@pytest.fixture
def search_client() -> FakeClient:
    return FakeClient(
        tools={"search": "AI trends: agents are everywhere", "weather": "sunny"},
        prompts={
            "report_template": [
                {"role": "user", "content": {"type": "text", "text": "Write a formal report."}}
            ]
        },
        resources={"file:///readme.md": "# Readme"},
    )


@pytest.fixture
def registry(search_client: FakeClient) -> CapabilityRegistry:
    reg = CapabilityRegistry()
    reg.register(search_client.discover(), search_client)  # type: ignore[arg-type]
    return reg
