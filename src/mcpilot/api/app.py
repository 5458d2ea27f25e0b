"""
REST API for mcpilot.

It exposes the following endpoints:
- **GET /health**        - liveness probe for health checks.
- **GET /capabilities**  - tools, prompt templates and resources of the connected servers.
- **POST /agent**        - single request: {"message": "..."} -> reply, plan and reasoning trace.

Route handlers are plain ``def`` functions, so FastAPI runs each agent run on its worker thread
pool rather than on the request-intake event loop.
"""

import logging
from functools import lru_cache

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
)

from mcpilot.agent.runtime import AgentRuntime
from mcpilot.api.models import (
    CapabilitiesResponse,
    MessageRequest,
    MessageResponse,
)
from mcpilot.bootstrap import build_runtime
from mcpilot.config import settings
from mcpilot.core.errors import MCPilotError

logger = logging.getLogger(__name__)

app = FastAPI(title="mcpilot API", version="0.1.0", description="MCP agent runtime API")


@lru_cache(maxsize=1)
def get_runtime() -> AgentRuntime:
    """Build the shared runtime on first use (discovery contacts every server once)."""
    return build_runtime(settings)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.get("/capabilities", response_model=CapabilitiesResponse, summary="List capabilities")
def capabilities(runtime: AgentRuntime = Depends(get_runtime)) -> CapabilitiesResponse:
    """Return the names registered from every connected server."""
    registry = runtime.registry
    return CapabilitiesResponse(
        servers=[str(server) for server in registry.servers],
        tools=registry.tool_names,
        prompts=registry.prompt_names,
        resources=registry.resource_uris,
    )


@app.post("/agent", response_model=MessageResponse, summary="Run the agent")
def agent_endpoint(
    req: MessageRequest, runtime: AgentRuntime = Depends(get_runtime)
) -> MessageResponse:
    """Plan, execute and synthesise an answer for one user message."""
    try:
        run = runtime.execute(req.message)
        reply = runtime.synthesize(run.synthesis)
    except MCPilotError as exc:
        logger.warning("Agent run failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return MessageResponse(reply=reply, plan=run.plan, trace=run.trace)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting mcpilot API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    uvicorn.run(
        "mcpilot.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m mcpilot.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
