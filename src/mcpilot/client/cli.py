"""Interactive shell that runs the agent in-process."""

from __future__ import annotations

import logging
from typing import Tuple

from mcpilot.agent.runtime import AgentRuntime
from mcpilot.agent.trace import render_step
from mcpilot.common import (
    AnsiColors,
    colored_print,
)
from mcpilot.core.errors import MCPilotError

logger = logging.getLogger(__name__)


def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def run_cli(runtime: AgentRuntime) -> None:
    """Read requests until 'exit' / 'quit' / Ctrl+C and print trace + answer for each."""
    colored_print(
        f"\n🛰  mcpilot shell ({runtime.planner.mode.value} planning, "
        f"{len(runtime.registry.tool_names)} tools) - type 'exit' or 'quit' to leave",
        AnsiColors.GREEN,
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        try:
            run = runtime.execute(user_msg)
            for step in run.trace:
                colored_print(render_step(step), AnsiColors.GREY, end="")
            reply = runtime.synthesize(run.synthesis)
        except MCPilotError as exc:
            logger.error("Run aborted: %s", exc)
            colored_print(f"⚠️ {exc}", AnsiColors.RED)
            continue

        colored_print(reply, AnsiColors.YELLOW)
