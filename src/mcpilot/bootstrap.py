"""Turns :class:`~mcpilot.config.Settings` into a ready :class:`AgentRuntime`."""

import logging

from mcpilot.agent.llm_provider import (
    LLMProvider,
    load_provider,
)
from mcpilot.agent.planner import load_planner
from mcpilot.agent.runtime import AgentRuntime
from mcpilot.config import (
    Settings,
    settings as default_settings,
)
from mcpilot.core.schema import RuntimeOptions
from mcpilot.mcp.client import MCPClient

logger = logging.getLogger(__name__)


def build_provider(cfg: Settings) -> LLMProvider:
    """Instantiate the configured LLM backend with explicit credentials."""
    if cfg.LLM_PROVIDER.lower() == "anthropic":
        return load_provider("anthropic", api_key=cfg.ANTHROPIC_API_KEY, model=cfg.ANTHROPIC_MODEL)
    return load_provider(cfg.LLM_PROVIDER, api_key=cfg.OPENAI_API_KEY, model=cfg.OPENAI_MODEL)


def runtime_options(cfg: Settings) -> RuntimeOptions:
    return RuntimeOptions(
        debug_mcp=cfg.DEBUG_MCP,
        debug_prompt=cfg.DEBUG_PROMPT,
        observation_limit=cfg.OBSERVATION_LIMIT,
    )


def build_runtime(cfg: Settings | None = None) -> AgentRuntime:
    """
    Connect to every configured MCP server and wire the agent stack.

    Raises
    ------
    ValueError
        If no MCP server is configured.
    """
    cfg = cfg or default_settings
    if not cfg.MCP_SERVERS:
        raise ValueError("No MCP servers configured (set MCP_SERVERS).")

    provider = build_provider(cfg)
    planner = load_planner(cfg.PLANNING_MODE, provider)
    clients = [MCPClient(url, timeout=cfg.MCP_TIMEOUT) for url in cfg.MCP_SERVERS]
    logger.info("Connecting to %d MCP server(s) [planning=%s]", len(clients), cfg.PLANNING_MODE)
    return AgentRuntime.from_clients(clients, provider, planner, runtime_options(cfg))
