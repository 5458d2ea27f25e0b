"""
Schema definitions for server <-> registry <-> planner <-> runtime messages.

These data models serve as the contract between the MCP protocol client, the planner LLM, the
execution loop and the capability-calling collaborator.  We keep them separate from runtime logic
so they can be imported anywhere without side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
)

MAX_STEPS = 10
"""Hard ceiling on the number of loop iterations any plan may authorise."""


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------
class ToolDescriptor(BaseModel):
    """A tool advertised by a server via ``tools/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    input_schema: JsonValue = Field(default=None, alias="inputSchema")


class PromptArgument(BaseModel):
    """One declared argument of a prompt template."""

    name: str
    description: str = ""
    required: bool = False
    type: Optional[str] = None  # only when the server supplies richer typing


class PromptDescriptor(BaseModel):
    """A prompt template advertised by a server via ``prompts/list``."""

    name: str
    description: str = ""
    arguments: List[PromptArgument] = Field(default_factory=list)


class ResourceDescriptor(BaseModel):
    """A readable resource advertised by a server via ``resources/list``."""

    uri: Optional[str] = None
    name: Optional[str] = None
    description: str = ""

    @property
    def key(self) -> Optional[str]:
        """URI, falling back to the resource name; ``None`` when the server sent neither."""
        return self.uri or self.name or None


class ServerDescriptor(BaseModel):
    """Discovered state of one server: identity, capability flags and item lists."""

    url: str
    name: str = "unknown"
    version: str = "?"
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    tools: List[ToolDescriptor] = Field(default_factory=list)
    resources: List[ResourceDescriptor] = Field(default_factory=list)
    prompts: List[PromptDescriptor] = Field(default_factory=list)

    @property
    def supports_tools(self) -> bool:
        return "tools" in self.capabilities

    @property
    def supports_resources(self) -> bool:
        return "resources" in self.capabilities

    @property
    def supports_prompts(self) -> bool:
        return "prompts" in self.capabilities

    def __str__(self) -> str:
        return (
            f"{self.name} v{self.version} @ {self.url} "
            f"[tools={len(self.tools)} resources={len(self.resources)} prompts={len(self.prompts)}]"
        )


# ---------------------------------------------------------------------------
# LLM collaborator wire shapes
# ---------------------------------------------------------------------------
class Message(BaseModel):
    """A plain conversation message."""

    role: str
    content: str


class ToolDefinition(BaseModel):
    """A callable offered to the capability-calling collaborator."""

    name: str
    description: str = ""
    input_schema: JsonValue = None


class ToolCall(BaseModel):
    """A call that the collaborator wants the runtime to execute."""

    call_id: str = Field(..., description="Opaque identifier echoed back with the result")
    name: str = Field(..., description="Registered tool or prompt-fetch name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Call arguments")


class ToolResult(BaseModel):
    """Result text handed back to the collaborator for one call."""

    call_id: str
    result: str


class LLMResponse(BaseModel):
    """One collaborator turn: either final text, tool calls, or both."""

    final_text: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    replay_state: List[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------
class PlanningMode(str, Enum):
    """How much upfront planning happens before execution."""

    MINIMAL = "minimal"  # no planner call, executor self-directs
    BALANCED = "balanced"  # one cheap call: complexity + budget + intent
    FULL = "full"  # one richer call with ordered steps, plus per-step reflection


class Plan(BaseModel):
    """Immutable execution plan produced once per run."""

    model_config = ConfigDict(frozen=True)

    mode: PlanningMode
    complexity: str
    budget: int = Field(..., ge=0, le=MAX_STEPS)
    intent: str
    steps: Tuple[str, ...] = ()
    direct_answer: Optional[str] = None

    @property
    def is_trivial(self) -> bool:
        """True when the plan answers directly without any execution."""
        return self.budget == 0 and self.direct_answer is not None


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
class Observation(BaseModel):
    """Research output of a regular tool call."""

    kind: Literal["observation"] = "observation"
    text: str


class DeferredTemplate(BaseModel):
    """Rendered prompt-template text, held back for the synthesis step."""

    kind: Literal["deferred_template"] = "deferred_template"
    text: str


DispatchOutcome = Union[Observation, DeferredTemplate]


class ReasoningStep(BaseModel):
    """One loop iteration: actions taken, their observations, and optional reflection."""

    model_config = ConfigDict(frozen=True)

    step: int
    actions: Tuple[str, ...] = ()
    observations: Tuple[str, ...] = ()
    reflection: str = ""
    goal_achieved: bool = False


class SynthesisInput(BaseModel):
    """Everything the final answer-generation call needs."""

    system_instruction: Optional[str] = None
    user_message: str

    @property
    def is_direct_answer(self) -> bool:
        """No further generation needed; ``user_message`` is the answer."""
        return self.system_instruction is None


class AgentRun(BaseModel):
    """Complete outcome of one run."""

    plan: Plan
    synthesis: SynthesisInput
    trace: List[ReasoningStep] = Field(default_factory=list)
    dispatched: int = 0  # calls actually sent to a server


class RuntimeOptions(BaseModel):
    """Explicit runtime configuration passed to :class:`AgentRuntime`."""

    debug_mcp: bool = False  # log raw MCP results at DEBUG
    debug_prompt: bool = False  # log the execution prompt at DEBUG
    observation_limit: int = 500
    history_item_limit: int = 300
    reflect: Optional[bool] = None  # None -> reflect only in full mode
