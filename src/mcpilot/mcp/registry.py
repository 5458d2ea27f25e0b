"""
Capability registry for mcpilot.

Aggregates the tools, resources and prompt templates discovered on every :class:`MCPClient` into a
single name-keyed namespace.  The first registration of a name wins; later duplicates are logged
and dropped, never merged.

For each prompt template an extra tool-shaped definition named ``get_prompt__<template>`` is
synthesised so the capability-calling collaborator can fetch templates the same way it calls tools.
"""

import logging
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
)

from mcpilot.core.errors import UnknownCapabilityError
from mcpilot.core.schema import (
    PromptDescriptor,
    ServerDescriptor,
    ToolDefinition,
)
from mcpilot.mcp.client import MCPClient

logger = logging.getLogger(__name__)

PROMPT_PREFIX = "get_prompt__"
"""Name prefix of the synthesised prompt-fetch definitions."""


def prompt_schema(prompt: PromptDescriptor) -> Dict[str, Any]:
    """Build a JSON object schema from a template's declared arguments."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for arg in prompt.arguments:
        prop: Dict[str, Any] = {"type": arg.type or "string"}
        if arg.description.strip():
            prop["description"] = arg.description
        properties[arg.name] = prop
        if arg.required:
            required.append(arg.name)

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


class CapabilityRegistry:
    """Name-keyed index of everything the connected servers offer."""

    def __init__(self) -> None:
        self.servers: List[ServerDescriptor] = []
        self._tools: Dict[str, MCPClient] = {}
        self._prompts: Dict[str, MCPClient] = {}
        self._resources: Dict[str, MCPClient] = {}
        self._prompt_meta: Dict[str, PromptDescriptor] = {}
        self._definitions: Dict[str, ToolDefinition] = {}

    @classmethod
    def from_clients(cls, clients: Iterable[MCPClient]) -> "CapabilityRegistry":
        """Discover every client, in order, and register what it offers."""
        registry = cls()
        for client in clients:
            registry.register(client.discover(), client)
        return registry

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register(self, server: ServerDescriptor, client: MCPClient) -> None:
        """Index one discovered server.  First registration of any name wins."""
        self.servers.append(server)

        for tool in server.tools:
            if tool.name.startswith(PROMPT_PREFIX):
                logger.warning(
                    "Tool '%s' from %s ignored (prefix '%s' is reserved for prompt templates)",
                    tool.name,
                    server.url,
                    PROMPT_PREFIX,
                )
                continue
            if tool.name in self._tools:
                logger.warning(
                    "Duplicate tool '%s' from %s ignored (already provided by %s)",
                    tool.name,
                    server.url,
                    self._tools[tool.name],
                )
                continue
            self._tools[tool.name] = client
            self._definitions[tool.name] = ToolDefinition(
                name=tool.name, description=tool.description, input_schema=tool.input_schema
            )

        for resource in server.resources:
            key = resource.key
            if not key:
                logger.warning("Resource without uri or name from %s ignored", server.url)
                continue
            if key in self._resources:
                logger.warning("Duplicate resource '%s' from %s ignored", key, server.url)
                continue
            self._resources[key] = client

        for prompt in server.prompts:
            fetch_name = PROMPT_PREFIX + prompt.name
            if prompt.name in self._prompts or fetch_name in self._definitions:
                logger.warning("Duplicate prompt '%s' from %s ignored", prompt.name, server.url)
                continue
            self._prompts[prompt.name] = client
            self._prompt_meta[prompt.name] = prompt
            self._definitions[fetch_name] = ToolDefinition(
                name=fetch_name,
                description=(
                    f"Output template for '{prompt.name}'. Structures the FINAL ANSWER. "
                    "Call early to set format; use data tools for research. "
                    + prompt.description
                ).strip(),
                input_schema=prompt_schema(prompt),
            )

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #
    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    @property
    def prompt_names(self) -> List[str]:
        return list(self._prompts)

    @property
    def resource_uris(self) -> List[str]:
        return list(self._resources)

    @property
    def prompts(self) -> List[PromptDescriptor]:
        return list(self._prompt_meta.values())

    @property
    def tool_definitions(self) -> List[ToolDefinition]:
        """Definitions offered to the collaborator: tools first, then prompt fetches."""
        return list(self._definitions.values())

    def definition(self, name: str) -> Optional[ToolDefinition]:
        return self._definitions.get(name)

    def tool_client(self, name: str) -> MCPClient:
        client = self._tools.get(name)
        if client is None:
            raise UnknownCapabilityError("tool", name)
        return client

    def prompt_client(self, name: str) -> MCPClient:
        client = self._prompts.get(name)
        if client is None:
            raise UnknownCapabilityError("prompt", name)
        return client

    def resource_client(self, uri: str) -> MCPClient:
        client = self._resources.get(uri)
        if client is None:
            raise UnknownCapabilityError("resource", uri)
        return client

    def prompt_descriptor(self, name: str) -> Optional[PromptDescriptor]:
        return self._prompt_meta.get(name)

    def read_resource(self, uri: str) -> str:
        """Read *uri* through the server that advertised it."""
        return self.resource_client(uri).read_resource(uri)

    # ------------------------------------------------------------------ #
    # Summaries
    # ------------------------------------------------------------------ #
    def summary(self) -> str:
        """Capability summary handed to the planner."""
        lines: List[str] = []
        if self._tools:
            lines.append("TOOLS: " + ", ".join(self._tools))
        if self._prompts:
            lines.append("PROMPT TEMPLATES: " + ", ".join(self._prompts))
        if self._resources:
            lines.append("RESOURCES: " + ", ".join(self._resources))
        return "\n".join(lines) + ("\n" if lines else "")

    def __len__(self) -> int:
        return len(self._tools) + len(self._prompts) + len(self._resources)
