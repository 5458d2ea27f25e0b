"""
mcpilot entry point.

This file handles startup concerns (arg-parsing, logging) and launches the appropriate
interface (API or CLI).
"""

import argparse
import logging
import sys

from mcpilot.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep per-request HTTP chatter out of the agent logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for mcpilot.

    Sets up the command-line interface, initializes logging, and starts the application in either
    API or CLI mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the mcpilot MCP agent")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API or an interactive CLI (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--planning-mode",
        choices=["minimal", "balanced", "full"],
        type=str.lower,
        default=settings.PLANNING_MODE,
        help="Planning strategy (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    settings.PLANNING_MODE = args.planning_mode

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting mcpilot [%s mode, %s planning]", args.mode, settings.PLANNING_MODE)
    logger.debug("Settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY", "ANTHROPIC_API_KEY"}))

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from mcpilot.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    from mcpilot.bootstrap import build_runtime  # pylint: disable=import-outside-toplevel
    from mcpilot.client.cli import run_cli  # pylint: disable=import-outside-toplevel
    from mcpilot.core.errors import MCPilotError  # pylint: disable=import-outside-toplevel

    try:
        runtime = build_runtime(settings)
    except (ValueError, MCPilotError) as exc:
        logger.error("Could not start agent: %s", exc)
        sys.exit(1)
    run_cli(runtime)


if __name__ == "__main__":
    main()
