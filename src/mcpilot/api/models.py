"""
Pydantic models for mcpilot API requests and responses.
This module defines the request and response schemas used by the mcpilot API.
"""

from typing import List

from pydantic import (
    BaseModel,
    Field,
)

from mcpilot.core.schema import (
    Plan,
    ReasoningStep,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User request for the agent")


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    plan: Plan
    trace: List[ReasoningStep] = Field(default_factory=list)


class CapabilitiesResponse(BaseModel):
    """Names of everything the connected servers offer."""

    servers: List[str]
    tools: List[str]
    prompts: List[str]
    resources: List[str]
