"""
LLM provider interface for mcpilot.

This module is the only place that *directly* calls an LLM.  Everything else (planner, runtime,
MCP client) stays model-agnostic and talks to an :class:`LLMProvider`.

We support two back-ends out of the box:

1. **OpenAI** Chat Completions with function tools.
2. **Anthropic** Messages API with tool use.

Additional providers can be added by subclassing :class:`LLMProvider` and registering via
:func:`register_provider`.  Credentials and model names are always passed to the constructor.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

from mcpilot.core.errors import TransportError
from mcpilot.core.schema import (
    LLMResponse,
    Message,
    ToolCall,
    ToolDefinition,
    ToolResult,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: dict[str, Type["LLMProvider"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a provider class under *name*."""

    def wrapper(cls: Type["LLMProvider"]) -> Type["LLMProvider"]:
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_provider(name: str, **kwargs: Any) -> "LLMProvider":
    """
    Factory that returns an instantiated provider.

    *kwargs* (``api_key``, ``model``) are forwarded to the provider constructor.
    """
    cls = _PROVIDER_REGISTRY.get(name.lower())
    if cls is None:
        raise ValueError(f"LLM provider '{name}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class LLMProvider(ABC):
    """Vendor-agnostic capability-calling collaborator."""

    @abstractmethod
    def chat(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        """First turn - may return tool calls or a final text answer."""

    @abstractmethod
    def continue_with_results(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        results: Sequence[ToolResult],
        replay_state: Sequence[Any],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        """Continuation after the tool results of the previous turn are collected."""

    def complete(self, system_instruction: str | None, user_message: str) -> str:
        """Simple single-turn text completion with no tools."""
        response = self.chat(system_instruction, [Message(role="user", content=user_message)], [])
        return response.final_text or ""


def _parse_arguments(raw: str | None, tool_name: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unparseable arguments for '%s': %s", tool_name, raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
@register_provider("openai")
class OpenAIProvider(LLMProvider):
    """OpenAI Chat Completions with function tools."""

    def __init__(self, api_key: str | None = None, model: str = "gpt-4.1") -> None:
        import openai  # pylint: disable=import-outside-toplevel

        self.model = model
        self._client = openai.OpenAI(api_key=api_key)

    def chat(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        return self._create(self._base_messages(system_instruction, conversation), tools)

    def continue_with_results(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        results: Sequence[ToolResult],
        replay_state: Sequence[Any],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        messages = self._base_messages(system_instruction, conversation)
        messages.extend(replay_state)
        messages.extend(
            {"role": "tool", "tool_call_id": r.call_id, "content": r.result} for r in results
        )
        return self._create(messages, tools)

    @staticmethod
    def _base_messages(
        system_instruction: str | None, conversation: Sequence[Message]
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if system_instruction and system_instruction.strip():
            messages.append({"role": "system", "content": system_instruction})
        messages.extend({"role": m.role, "content": m.content} for m in conversation)
        return messages

    def _create(self, messages: List[Dict[str, Any]], tools: Sequence[ToolDefinition]) -> LLMResponse:
        import openai  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.input_schema or {"type": "object", "properties": {}},
                    },
                }
                for t in tools
            ]
            kwargs["tool_choice"] = "auto"

        try:
            resp = self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise TransportError(f"OpenAI request failed: {exc}") from exc

        message = resp.choices[0].message
        calls = [
            ToolCall(
                call_id=tc.id,
                name=tc.function.name,
                arguments=_parse_arguments(tc.function.arguments, tc.function.name),
            )
            for tc in (message.tool_calls or [])
        ]
        replay: List[Any] = []
        if message.tool_calls:
            replay.append(
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.function.name,
                                "arguments": tc.function.arguments,
                            },
                        }
                        for tc in message.tool_calls
                    ],
                }
            )
        logger.debug("OpenAI response: text=%r calls=%s", message.content, [c.name for c in calls])
        return LLMResponse(final_text=message.content, tool_calls=calls, replay_state=replay)


@register_provider("anthropic")
class AnthropicProvider(LLMProvider):
    """Anthropic Claude Messages API with tool use."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-haiku-latest",
        max_tokens: int = 8192,
    ) -> None:
        import anthropic  # pylint: disable=import-outside-toplevel

        self.model = model
        self.max_tokens = max_tokens
        self._client = anthropic.Anthropic(api_key=api_key)

    def chat(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        messages = [{"role": m.role, "content": m.content} for m in conversation]
        return self._create(system_instruction, messages, tools)

    def continue_with_results(
        self,
        system_instruction: str | None,
        conversation: Sequence[Message],
        results: Sequence[ToolResult],
        replay_state: Sequence[Any],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        messages: List[Dict[str, Any]] = [
            {"role": m.role, "content": m.content} for m in conversation
        ]
        messages.extend(replay_state)
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": r.call_id, "content": r.result}
                    for r in results
                ],
            }
        )
        return self._create(system_instruction, messages, tools)

    def _create(
        self,
        system_instruction: str | None,
        messages: List[Dict[str, Any]],
        tools: Sequence[ToolDefinition],
    ) -> LLMResponse:
        import anthropic  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": messages,
        }
        if system_instruction and system_instruction.strip():
            kwargs["system"] = system_instruction
        if tools:
            kwargs["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.input_schema or {"type": "object", "properties": {}},
                }
                for t in tools
            ]

        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            raise TransportError(f"Anthropic request failed: {exc}") from exc

        texts: List[str] = []
        calls: List[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                args = block.input if isinstance(block.input, dict) else {}
                calls.append(ToolCall(call_id=block.id, name=block.name, arguments=args))

        replay: List[Any] = []
        if calls:
            replay.append(
                {
                    "role": "assistant",
                    "content": [block.model_dump(exclude_none=True) for block in response.content],
                }
            )
        text = "\n".join(texts) if texts else None
        logger.debug("Anthropic response: text=%r calls=%s", text, [c.name for c in calls])
        return LLMResponse(final_text=text, tool_calls=calls, replay_state=replay)
