"""Tests for the REST API with the runtime dependency overridden."""

from typing import Iterator

import pytest
from conftest import (
    FakeClient,
    ScriptedProvider,
    calls,
)
from fastapi.testclient import TestClient

from mcpilot.agent.planner import load_planner
from mcpilot.agent.runtime import AgentRuntime
from mcpilot.api.app import (
    app,
    get_runtime,
)
from mcpilot.mcp.registry import CapabilityRegistry


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider(
        turns=[calls(("search", {"q": "AI"}))], completions=["Agents are trending."]
    )


@pytest.fixture
def client(registry: CapabilityRegistry, provider: ScriptedProvider) -> Iterator[TestClient]:
    runtime = AgentRuntime(registry, provider, load_planner("minimal"))
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    """Liveness probe answers without touching the runtime."""
    assert client.get("/health").json() == {"status": "ok"}


def test_capabilities(client: TestClient) -> None:
    """Registered names are listed per kind."""
    body = client.get("/capabilities").json()

    assert body["tools"] == ["search", "weather"]
    assert body["prompts"] == ["report_template"]
    assert body["resources"] == ["file:///readme.md"]
    assert len(body["servers"]) == 1


def test_agent_run(client: TestClient, search_client: FakeClient) -> None:
    """A research request returns the synthesised reply, the plan and the trace."""
    resp = client.post("/agent", json={"message": "What is trending in AI?"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["reply"] == "Agents are trending."
    assert body["plan"]["mode"] == "minimal"
    assert body["trace"][0]["actions"] == ["search"]
    assert search_client.tool_calls == [("search", {"q": "AI"})]


def test_agent_greeting(client: TestClient, provider: ScriptedProvider) -> None:
    """Greetings are answered directly with an empty trace."""
    body = client.post("/agent", json={"message": "hi!"}).json()

    assert body["reply"] == "Hello! How can I help you today?"
    assert body["trace"] == []
    assert provider.complete_calls == []


def test_agent_failure_maps_to_502(registry: CapabilityRegistry) -> None:
    """Run-aborting errors surface as a bad-gateway response."""
    provider = ScriptedProvider(turns=[calls(("missing_tool", {}))])
    runtime = AgentRuntime(registry, provider, load_planner("minimal"))
    app.dependency_overrides[get_runtime] = lambda: runtime
    try:
        resp = TestClient(app).post("/agent", json={"message": "do something"})
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 502
    assert "missing_tool" in resp.json()["detail"]


def test_empty_message_rejected(client: TestClient) -> None:
    """Request validation rejects an empty message."""
    assert client.post("/agent", json={"message": ""}).status_code == 422
