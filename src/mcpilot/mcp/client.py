"""
MCP protocol client (JSON-RPC over HTTP, responses optionally SSE-wrapped).

Lifecycle: ``initialize`` -> ``notifications/initialized`` -> paginated ``*/list`` calls for every
capability area the server advertised.  After discovery the client exposes :meth:`call_tool`,
:meth:`read_resource` and :meth:`get_prompt` for the agent loop.

There are no retries here: any transport or protocol failure propagates to the caller.
"""

import itertools
import json
import logging
import threading
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
)

import httpx
from pydantic import ValidationError

from mcpilot.core.errors import (
    ProtocolError,
    TransportError,
)
from mcpilot.core.schema import (
    PromptDescriptor,
    ResourceDescriptor,
    ServerDescriptor,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "mcpilot"
CLIENT_VERSION = "0.1.0"
SESSION_HEADER = "Mcp-Session-Id"

_SSE_DATA = "data:"


def parse_body(raw: str) -> Dict[str, Any]:
    """
    Decode a response body that may be wrapped in a single SSE event.

    A body that is a bare JSON document is parsed directly; otherwise the payload of the first
    ``data:`` line is parsed.

    Raises
    ------
    ProtocolError
        If no JSON object can be decoded.
    """
    text = (raw or "").strip()
    if text and text[0] not in "{[":
        for line in text.splitlines():
            if line.startswith(_SSE_DATA):
                text = line[len(_SSE_DATA) :].strip()
                break
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Response is not valid JSON: {text[:200]!r}") from exc
    if not isinstance(payload, dict):
        raise ProtocolError(f"Expected a JSON-RPC object, got {type(payload).__name__}")
    return payload


def _check_error(payload: Mapping[str, Any], method: str) -> None:
    err = payload.get("error")
    if err is None:
        return
    code = err.get("code", -1) if isinstance(err, dict) else -1
    message = err.get("message", "unknown") if isinstance(err, dict) else str(err)
    raise ProtocolError(f"MCP '{method}' error [{code}]: {message}", code=code)


class MCPClient:
    """
    One client per server endpoint.

    The session token is mutable instance state set once during the handshake.  Discovery is
    guarded by a lock so that a client shared across threads initialises exactly once.
    """

    def __init__(
        self,
        server_url: str,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self.server_url = server_url
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.session_id: Optional[str] = None
        self.server_info: Optional[ServerDescriptor] = None

    # ------------------------------------------------------------------ #
    # Discovery
    # ------------------------------------------------------------------ #
    def discover(self) -> ServerDescriptor:
        """Handshake + full capability discovery.  Idempotent."""
        with self._lock:
            if self.server_info is not None:
                return self.server_info

            info = self._initialize()
            logger.info("Connected: %s", info)

            try:
                if info.supports_tools:
                    info.tools.extend(
                        ToolDescriptor.model_validate(item)
                        for item in self.list_all("tools/list", "tools")
                    )
                if info.supports_resources:
                    info.resources.extend(
                        ResourceDescriptor.model_validate(item)
                        for item in self.list_all("resources/list", "resources")
                    )
                if info.supports_prompts:
                    info.prompts.extend(
                        PromptDescriptor.model_validate(item)
                        for item in self.list_all("prompts/list", "prompts")
                    )
            except ValidationError as exc:
                raise ProtocolError(f"Malformed discovery item from {self.server_url}: {exc}") from exc

            logger.info(
                "  tools=%d  resources=%d  prompts=%d",
                len(info.tools),
                len(info.resources),
                len(info.prompts),
            )
            self.server_info = info
            return info

    def list_all(self, method: str, key: str) -> List[Dict[str, Any]]:
        """Follow ``nextCursor`` until absent or null, accumulating ``result[key]``."""
        items: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            params: Dict[str, Any] = {}
            if cursor is not None:
                params["cursor"] = cursor
            result = self._send_request(method, params)
            page = result.get(key) or []
            if not isinstance(page, list):
                raise ProtocolError(f"{method}: '{key}' is not an array")
            items.extend(page)
            next_cursor = result.get("nextCursor")
            if next_cursor is None:
                return items
            cursor = str(next_cursor)
            logger.debug("%s: following cursor %s", method, cursor)

    # ------------------------------------------------------------------ #
    # Primitives
    # ------------------------------------------------------------------ #
    def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> str:
        """Invoke ``tools/call`` and join the text blocks of the result."""
        result = self._send_request(
            "tools/call", {"name": name, "arguments": dict(arguments or {})}
        )
        content = result.get("content")
        if not isinstance(content, list):
            raise ProtocolError("tools/call: no content array")
        return "\n".join(
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )

    def read_resource(self, uri: str) -> str:
        """Invoke ``resources/read`` and join every item exposing ``text``."""
        result = self._send_request("resources/read", {"uri": uri})
        contents = result.get("contents")
        if not isinstance(contents, list):
            raise ProtocolError("resources/read: no contents array")
        return "\n".join(
            str(item["text"]) for item in contents if isinstance(item, dict) and "text" in item
        )

    def get_prompt(
        self, name: str, arguments: Mapping[str, Any] | None = None
    ) -> List[Dict[str, Any]]:
        """Invoke ``prompts/get`` and return the raw ``[{role, content}]`` message list."""
        params: Dict[str, Any] = {"name": name}
        if arguments is not None:
            params["arguments"] = dict(arguments)
        messages = self._send_request("prompts/get", params).get("messages")
        if not isinstance(messages, list):
            raise ProtocolError("prompts/get: no messages array")
        return messages

    # ------------------------------------------------------------------ #
    # Handshake
    # ------------------------------------------------------------------ #
    def _initialize(self) -> ServerDescriptor:
        params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
            "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
        }
        response = self._post(self._build_rpc("initialize", params))
        # httpx headers are case-insensitive, so Mcp-Session-Id / MCP-Session-Id both match
        self.session_id = response.headers.get(SESSION_HEADER)
        payload = self._decode(response)
        _check_error(payload, "initialize")
        result = payload.get("result")
        if not isinstance(result, dict):
            raise ProtocolError("initialize: no result object")

        self._send_notification("notifications/initialized")

        server = result.get("serverInfo") or {}
        return ServerDescriptor(
            url=self.server_url,
            name=server.get("name", "unknown"),
            version=server.get("version", "?"),
            capabilities=result.get("capabilities") or {},
        )

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #
    def _send_request(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = self._decode(self._post(self._build_rpc(method, params)))
        _check_error(payload, method)
        result = payload.get("result")
        if not isinstance(result, dict):
            raise ProtocolError(f"{method}: no result object")
        return result

    def _send_notification(self, method: str) -> None:
        body = {"jsonrpc": "2.0", "method": method, "params": {}}
        response = self._post(body)
        logger.debug("Notification %s -> HTTP %d", method, response.status_code)

    def _post(self, body: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self.session_id is not None:
            headers[SESSION_HEADER] = self.session_id
        try:
            return self._http.post(self.server_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Request '{body.get('method')}' to {self.server_url} failed: {exc}"
            ) from exc

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = parse_body(response.text)
        except ProtocolError as exc:
            if response.is_error:
                raise TransportError(
                    f"HTTP {response.status_code} from {self.server_url}"
                ) from exc
            raise
        if response.is_error and payload.get("error") is None:
            raise TransportError(f"HTTP {response.status_code} from {self.server_url}")
        return payload

    def _build_rpc(self, method: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        rpc: Dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            rpc["params"] = params
        return rpc

    # ------------------------------------------------------------------ #
    # Resource management
    # ------------------------------------------------------------------ #
    def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "MCPClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MCPClient({self.server_url!r})"
