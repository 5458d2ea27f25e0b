"""Dispatches collaborator calls to the owning MCP server and shapes the outcome."""

import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from mcpilot.core.schema import (
    DeferredTemplate,
    DispatchOutcome,
    Observation,
    PromptDescriptor,
    ToolCall,
)
from mcpilot.mcp.registry import (
    PROMPT_PREFIX,
    CapabilityRegistry,
)

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "1", "yes", "y", "on"}


def fingerprint(call: ToolCall) -> str:
    """Deduplication key: tool name plus canonically serialised arguments."""
    return f"{call.name}|{json.dumps(call.arguments, sort_keys=True, default=str)}"


def parse_bool(value: str) -> bool:
    """Permissive boolean parse; anything not truthy-looking is ``False``."""
    return value.strip().lower() in _TRUE_WORDS


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value).strip()


def coerce_arguments(
    prompt: PromptDescriptor | None,
    raw: Mapping[str, Any],
    schema: Mapping[str, Any] | None = None,
) -> Dict[str, Any]:
    """
    Convert text-valued collaborator arguments into the types a prompt template declares.

    Parameters
    ----------
    prompt:
        The template's descriptor.  Without it *raw* is returned unchanged.
    raw:
        Arguments as supplied by the collaborator.
    schema:
        JSON schema of the synthesised prompt-fetch definition; its ``properties.*.type``
        values select the conversion.  Missing types are treated as ``string``.

    Rules
    -----
    * empty or ``"null"`` values are dropped when optional, passed through when required so the
      server can report a precise validation failure;
    * ``integer`` / ``int`` / ``number`` values are parsed to ``int``; on failure they are passed
      through (required) or dropped (optional);
    * ``boolean`` / ``bool`` values use :func:`parse_bool`;
    * everything else is passed on as a string.
    """
    if prompt is None or not prompt.arguments:
        return dict(raw)

    properties = (schema or {}).get("properties") or {}
    required = {arg.name: arg.required for arg in prompt.arguments}
    out: Dict[str, Any] = {}

    for key, value in raw.items():
        text = _as_text(value)
        is_required = required.get(key, False)
        if not text or text.lower() == "null":
            if is_required:
                out[key] = value if isinstance(value, str) else text
            continue

        prop = properties.get(key)
        kind = (prop.get("type") if isinstance(prop, dict) else None) or "string"
        kind = str(kind).lower()
        if kind in ("integer", "int", "number"):
            try:
                out[key] = int(text)
            except ValueError:
                if is_required:
                    out[key] = text
        elif kind in ("boolean", "bool"):
            out[key] = parse_bool(text)
        else:
            out[key] = text
    return out


def _message_text(message: Mapping[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, dict):
        text = content.get("text")
        return str(text) if text is not None else json.dumps(content)
    if isinstance(content, list):
        return "\n".join(
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
    if isinstance(content, str):
        return content
    return json.dumps(message)


def extract_prompt_text(messages: Any) -> str:
    """
    Flatten a ``prompts/get`` message list into plain text.

    A single message yields its text alone; several are rendered as ``[ROLE]`` sections separated by
    blank lines.  Anything that is not a non-empty list is serialised as JSON.
    """
    if not isinstance(messages, list) or not messages:
        return json.dumps(messages)
    if len(messages) == 1:
        return _message_text(messages[0])
    sections: List[str] = []
    for message in messages:
        role = str(message.get("role") or "user").upper()
        sections.append(f"[{role}]\n{_message_text(message)}")
    return "\n\n".join(sections)


def execute_call(
    registry: CapabilityRegistry, call: ToolCall, debug: bool = False
) -> DispatchOutcome:
    """
    Route *call* to the owning server.

    Returns
    -------
    DispatchOutcome
        :class:`DeferredTemplate` for ``get_prompt__*`` fetches, :class:`Observation` otherwise.

    Raises
    ------
    UnknownCapabilityError
        If the name is not in the registry.
    TransportError, ProtocolError
        Propagated unchanged from the MCP client.
    """
    if call.name.startswith(PROMPT_PREFIX):
        prompt_name = call.name[len(PROMPT_PREFIX) :]
        client = registry.prompt_client(prompt_name)
        definition = registry.definition(call.name)
        schema = definition.input_schema if definition is not None else None
        args = coerce_arguments(
            registry.prompt_descriptor(prompt_name),
            call.arguments,
            schema if isinstance(schema, dict) else None,
        )
        logger.debug("Fetching prompt '%s' with args=%s", prompt_name, args)
        messages = client.get_prompt(prompt_name, args)
        if debug:
            logger.debug("MCP prompts/get[%s]:\n%s", prompt_name, json.dumps(messages, indent=2))
        return DeferredTemplate(text=extract_prompt_text(messages))

    client = registry.tool_client(call.name)
    logger.debug("Executing tool '%s' with args=%s", call.name, call.arguments)
    result = client.call_tool(call.name, call.arguments)
    if debug:
        logger.debug("MCP %s:\n%s", call.name, result)
    return Observation(text=result)
