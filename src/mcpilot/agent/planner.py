"""
Planner for mcpilot.

Produces an immutable :class:`~mcpilot.core.schema.Plan` before the execution loop runs:

1. **minimal**  - regex trivial-check only; no LLM call, the executor self-directs.
2. **balanced** - one cheap LLM call -> complexity + budget + intent.
3. **full**     - one richer LLM call -> complexity + budget + intent + ordered steps.

LLM-backed planners never fail on a malformed reply: parse problems fall back to a deterministic
plan.  Transport failures from the provider still propagate.
"""

import json
import logging
import re
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Callable,
    ClassVar,
    List,
    Optional,
    Tuple,
    Type,
)

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
)

from mcpilot.agent.llm_provider import LLMProvider
from mcpilot.agent.prompts import (
    classifier_prompt,
    planner_prompt,
)
from mcpilot.core.errors import PlanParseError
from mcpilot.core.schema import (
    MAX_STEPS,
    Plan,
    PlanningMode,
)

logger = logging.getLogger(__name__)

GREETING_ANSWER = "Hello! How can I help you today?"
FILLER_ANSWER = "Happy to help! Could you tell me a little more about what you need?"

_TRIVIAL_RE = re.compile(
    r"(hi+|hello+|hey+|sup|howdy|greetings|thanks?|thank you|bye|goodbye"
    r"|ok|okay|yes|no|sure|great|nice|cool|wow|lol|haha)[!?. ]*"
)


# ---------------------------------------------------------------------------
# Pydantic model for response validation
# ---------------------------------------------------------------------------
class PlannerResponse(BaseModel):
    """Validates classifier / planner replies from LLMs."""

    complexity: Optional[str] = "moderate"
    step_budget: Optional[int] = None
    intent: Optional[str] = None
    planned_steps: Optional[List[str]] = Field(default_factory=list)
    direct_answer: Optional[str] = None


def clamp(value: int) -> int:
    """Clamp a budget into ``[0, MAX_STEPS]``."""
    return max(0, min(value, MAX_STEPS))


def is_trivial(text: str) -> bool:
    """Greeting / acknowledgement heuristic used by the minimal planner."""
    return _TRIVIAL_RE.fullmatch(text.strip().lower()) is not None


def _sanitize_json_string(content: str) -> str:
    """Clean up JSON strings returned by LLMs."""
    # Strip markdown code blocks if present
    if "```" in content:
        match = re.search(r"```(?:json)?\s*(.+?)```", content, re.DOTALL)
        if match:
            content = match.group(1).strip()

    # Remove control characters except whitespace
    content = "".join(ch for ch in content if ch >= " " or ch in "\n\r\t")

    # Keep only the outermost {...} object when the model added prose around it
    open_idx = content.find("{")
    if open_idx >= 0:
        try:
            _, end = json.JSONDecoder().raw_decode(content, open_idx)
        except json.JSONDecodeError:
            return content.strip()
        return content[open_idx:end]
    return content.strip()


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: dict[PlanningMode, Type["BasePlanner"]] = {}


def register_planner(mode: PlanningMode) -> Callable:
    """Decorator to register a planner class for *mode*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        cls.mode = mode
        _PLANNER_REGISTRY[mode] = cls
        return cls

    return wrapper


def load_planner(
    mode: PlanningMode | str = PlanningMode.MINIMAL, provider: LLMProvider | None = None
) -> "BasePlanner":
    """Factory that returns an instantiated planner for *mode*."""
    try:
        key = PlanningMode(mode.lower() if isinstance(mode, str) else mode)
    except ValueError as exc:
        raise ValueError(f"Planning mode '{mode}' is not registered.") from exc
    return _PLANNER_REGISTRY[key](provider)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that converts (question, capability summary) -> Plan."""

    mode: ClassVar[PlanningMode]

    def __init__(self, provider: LLMProvider | None = None) -> None:
        self.provider = provider

    @abstractmethod
    def plan(self, question: str, capabilities: str) -> Plan:
        """Return the execution plan for *question*."""


@register_planner(PlanningMode.MINIMAL)
class MinimalPlanner(BasePlanner):
    """Heuristic planner; no external call."""

    def plan(self, question: str, capabilities: str) -> Plan:
        if is_trivial(question):
            return Plan(
                mode=self.mode,
                complexity="trivial",
                budget=0,
                intent="Greeting",
                direct_answer=GREETING_ANSWER,
            )
        logger.info("Executor self-directs within %d steps.", MAX_STEPS)
        return Plan(mode=self.mode, complexity="unknown", budget=MAX_STEPS, intent=question)


class _LLMPlanner(BasePlanner):
    """Shared request / parse / fallback logic for the LLM-backed planners."""

    DEFAULT_BUDGET: ClassVar[int] = 4
    FALLBACK_STEPS: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, provider: LLMProvider | None = None) -> None:
        if provider is None:
            raise ValueError(f"The '{self.mode.value}' planner needs an LLM provider.")
        super().__init__(provider)
        self.llm = provider

    @abstractmethod
    def _request(self, question: str, capabilities: str) -> str:
        """Ask the LLM and return its raw reply."""

    def plan(self, question: str, capabilities: str) -> Plan:
        raw = self._request(question, capabilities)
        logger.debug("%s planner response: %s", self.mode.value, raw)
        try:
            return self._parse_response(raw, question)
        except PlanParseError as exc:
            logger.error("Planner parse error: %s | raw: %s", exc, raw)
            return self.fallback(question)

    def fallback(self, question: str) -> Plan:
        """Deterministic plan used whenever the reply cannot be parsed."""
        return Plan(
            mode=self.mode,
            complexity="moderate",
            budget=4,
            intent=question,
            steps=self.FALLBACK_STEPS,
        )

    def _steps(self, parsed: PlannerResponse, budget: int) -> Tuple[str, ...]:
        return ()

    def _parse_response(self, content: str, question: str) -> Plan:
        try:
            parsed = PlannerResponse.model_validate_json(_sanitize_json_string(content or ""))
        except ValidationError as exc:
            raise PlanParseError(str(exc)) from exc

        budget = clamp(
            parsed.step_budget if parsed.step_budget is not None else self.DEFAULT_BUDGET
        )
        direct_answer = parsed.direct_answer or None
        if budget == 0 and direct_answer is None:
            direct_answer = FILLER_ANSWER

        return Plan(
            mode=self.mode,
            complexity=parsed.complexity or "moderate",
            budget=budget,
            intent=parsed.intent or question,
            steps=self._steps(parsed, budget),
            direct_answer=direct_answer,
        )


@register_planner(PlanningMode.BALANCED)
class BalancedPlanner(_LLMPlanner):
    """One lightweight classification call."""

    def _request(self, question: str, capabilities: str) -> str:
        return self.llm.complete(classifier_prompt(capabilities), f"Question: {question}")


@register_planner(PlanningMode.FULL)
class FullPlanner(_LLMPlanner):
    """One richer planning call producing an ordered step list."""

    DEFAULT_BUDGET = 3
    FALLBACK_STEPS = ("Search topic", "Search context", "Gather data", "Synthesise")

    def _request(self, question: str, capabilities: str) -> str:
        return self.llm.complete(planner_prompt(capabilities), f"User question: {question}")

    def _steps(self, parsed: PlannerResponse, budget: int) -> Tuple[str, ...]:
        steps = parsed.planned_steps or []
        if len(steps) != budget:
            logger.warning("Planner returned %d steps for a budget of %d", len(steps), budget)
        return tuple(steps[:budget])
