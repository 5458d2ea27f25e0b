"""Error types raised by mcpilot.

Callers can catch specific error types instead of inspecting httpx or SDK exceptions:

    from mcpilot.core.errors import ProtocolError, TransportError

    try:
        synthesis = runtime.run(question)
    except TransportError:
        # Server or LLM unreachable; the whole run is aborted, nothing was retried
        ...
    except ProtocolError as exc:
        # JSON-RPC error envelope or malformed response
        logger.error("MCP error %s: %s", exc.code, exc)
"""

from __future__ import annotations


class MCPilotError(Exception):
    """Base for all mcpilot errors."""


class TransportError(MCPilotError):
    """Network / HTTP failure reaching a server or LLM backend. Fatal for the run."""


class ProtocolError(MCPilotError):
    """JSON-RPC error object, or a response missing a required field. Fatal for the run."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class PlanParseError(MCPilotError):
    """Planner response is not the expected structure. Recovered by the planner."""


class UnknownCapabilityError(MCPilotError):
    """A tool, prompt or resource name is absent from the registry."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"Unknown {kind}: '{name}'")
        self.kind = kind
        self.name = name
