"""
Core agent loop.

``PLANNING -> (TRIVIAL_ANSWER | EXECUTING) -> SYNTHESIZING -> DONE``

:meth:`AgentRuntime.run` returns a :class:`~mcpilot.core.schema.SynthesisInput` instead of calling
the LLM for the final answer, so a presentation layer can stream that last call however it likes.
:meth:`AgentRuntime.answer` performs the final call in-process for the CLI and the REST API.
"""

from __future__ import annotations

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Iterable,
    List,
    Set,
)

from mcpilot.agent.llm_provider import LLMProvider
from mcpilot.agent.planner import BasePlanner
from mcpilot.agent.prompts import (
    CONTINUE,
    GOAL_ACHIEVED,
    GROUNDED_INSTRUCTION,
    REFLECTION_SYSTEM,
    base_system_prompt,
    execution_prompt,
    history_block,
    reflection_message,
    truncate,
)
from mcpilot.agent.tool_executor import (
    execute_call,
    fingerprint,
)
from mcpilot.agent.trace import ReasoningTrace
from mcpilot.core.schema import (
    AgentRun,
    DeferredTemplate,
    DispatchOutcome,
    Message,
    Plan,
    PlanningMode,
    ReasoningStep,
    RuntimeOptions,
    SynthesisInput,
    ToolCall,
    ToolResult,
)
from mcpilot.mcp.client import MCPClient
from mcpilot.mcp.registry import CapabilityRegistry

logger = logging.getLogger(__name__)

DUPLICATE_NOTICE = "[DUPLICATE] Already called with these arguments. Try something different."
TEMPLATE_QUEUED = "[PROMPT QUEUED] Template collected. Continue with data tools."
TEMPLATE_SEPARATOR = "\n\n---\n\n"


@dataclass
class _RunState:
    """Per-run bookkeeping; never shared between runs."""

    fingerprints: Set[str] = field(default_factory=set)
    history: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    trace: ReasoningTrace = field(default_factory=ReasoningTrace)
    dispatched: int = 0


class AgentRuntime:
    """Owns the registry and planner and drives the bounded call-execute-observe loop."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        provider: LLMProvider,
        planner: BasePlanner,
        options: RuntimeOptions | None = None,
    ) -> None:
        self.registry = registry
        self.llm = provider
        self.planner = planner
        self.options = options or RuntimeOptions()
        self.base_prompt = base_system_prompt(registry)
        for server in registry.servers:
            logger.info("  %s", server)
        logger.info(
            "Tools: %d  Prompts: %d  Resources: %d",
            len(registry.tool_names),
            len(registry.prompt_names),
            len(registry.resource_uris),
        )

    @classmethod
    def from_clients(
        cls,
        clients: Iterable[MCPClient],
        provider: LLMProvider,
        planner: BasePlanner,
        options: RuntimeOptions | None = None,
    ) -> "AgentRuntime":
        """Discover every client and build a runtime over the resulting registry."""
        return cls(CapabilityRegistry.from_clients(clients), provider, planner, options)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def run(self, question: str) -> SynthesisInput:
        """Plan, execute and return the input for the final answer-generation call."""
        return self.execute(question).synthesis

    def execute(self, question: str) -> AgentRun:
        """Like :meth:`run`, but also returns the plan, the trace and the dispatch count."""
        plan = self.planner.plan(question, self.registry.summary())
        logger.info(
            "mode=%s complexity=%s budget=%d",
            plan.mode.value,
            plan.complexity.upper(),
            plan.budget,
        )

        if plan.is_trivial:
            return AgentRun(
                plan=plan,
                synthesis=SynthesisInput(system_instruction=None, user_message=plan.direct_answer),
            )

        state = _RunState()
        synthesis = self._execute_loop(question, plan, state)
        return AgentRun(
            plan=plan, synthesis=synthesis, trace=state.trace.steps, dispatched=state.dispatched
        )

    def synthesize(self, synthesis: SynthesisInput) -> str:
        """Perform the final answer-generation call (no call for a direct answer)."""
        if synthesis.is_direct_answer:
            return synthesis.user_message
        return self.llm.complete(synthesis.system_instruction, synthesis.user_message)

    def answer(self, question: str) -> str:
        """Run the agent and generate the final answer text."""
        return self.synthesize(self.run(question))

    # ------------------------------------------------------------------ #
    # Execution loop
    # ------------------------------------------------------------------ #
    def _reflects(self, plan: Plan) -> bool:
        if self.options.reflect is not None:
            return self.options.reflect
        return plan.mode is PlanningMode.FULL

    def _execute_loop(self, question: str, plan: Plan, state: _RunState) -> SynthesisInput:
        budget = plan.budget
        reflect = self._reflects(plan)
        conversation = [Message(role="user", content=question)]
        tools = self.registry.tool_definitions

        prompt = execution_prompt(self.base_prompt, plan, budget)
        if self.options.debug_prompt:
            logger.debug("EXEC PROMPT [%s]:\n%s", plan.mode.value, prompt)

        response = self.llm.chat(prompt, conversation, tools)
        used = 0

        while response.tool_calls and used < budget:
            used += 1
            remaining = budget - used
            logger.info("[%s] step %d/%d", plan.mode.value, used, budget)

            actions: List[str] = []
            observations: List[str] = []
            results: List[ToolResult] = []

            for call in response.tool_calls:
                key = fingerprint(call)
                if key in state.fingerprints:
                    logger.info("  -> %s (duplicate, skipped)", call.name)
                    results.append(ToolResult(call_id=call.call_id, result=DUPLICATE_NOTICE))
                    actions.append(f"{call.name}(dup)")
                    observations.append("[DUPLICATE SKIPPED]")
                    continue

                state.fingerprints.add(key)
                logger.info("  -> %s", call.name)
                actions.append(call.name)
                outcome = execute_call(self.registry, call, debug=self.options.debug_mcp)
                state.dispatched += 1
                results.append(self._route(call, outcome, state, observations))

            reflection = ""
            done = False
            if reflect:
                reflection = self._reflect(question, plan.intent, state.history, remaining)
                done = GOAL_ACHIEVED in reflection

            state.trace.append(
                ReasoningStep(
                    step=used,
                    actions=tuple(actions),
                    observations=tuple(observations),
                    reflection=reflection,
                    goal_achieved=done,
                )
            )
            if done or remaining == 0:
                break

            prompt = execution_prompt(self.base_prompt, plan, remaining) + history_block(
                state.history, self.options.history_item_limit
            )
            response = self.llm.continue_with_results(
                prompt, conversation, results, response.replay_state, tools
            )

        if len(state.trace):
            logger.info("REASONING TRACE\n%s", state.trace.render())
        return self._build_synthesis(question, state)

    def _route(
        self,
        call: ToolCall,
        outcome: DispatchOutcome,
        state: _RunState,
        observations: List[str],
    ) -> ToolResult:
        """Send observations to history and templates to the deferred list."""
        if isinstance(outcome, DeferredTemplate):
            state.deferred.append(outcome.text)
            logger.info("  <- deferred prompt (%d chars)", len(outcome.text))
            observations.append("[PROMPT DEFERRED]")
            return ToolResult(call_id=call.call_id, result=TEMPLATE_QUEUED)

        logger.info("  <- %d chars", len(outcome.text))
        observations.append(outcome.text)
        state.history.append(
            f"OBSERVATION[{call.name}]: {truncate(outcome.text, self.options.observation_limit)}"
        )
        return ToolResult(call_id=call.call_id, result=outcome.text)

    def _reflect(self, question: str, intent: str, history: List[str], remaining: int) -> str:
        reply = self.llm.complete(
            REFLECTION_SYSTEM, reflection_message(question, intent, history, remaining)
        )
        return reply if reply.strip() else CONTINUE

    # ------------------------------------------------------------------ #
    # Synthesis
    # ------------------------------------------------------------------ #
    def _build_synthesis(self, question: str, state: _RunState) -> SynthesisInput:
        research = "".join(f"{item}\n\n" for item in state.history)

        # Collected templates become the system instruction
        if state.deferred:
            user = f"Original request: {question}\n\n" + (
                f"Research:\n\n{research}\nFulfil the system prompt using this research."
                if state.history
                else "Fulfil the system prompt instructions."
            )
            return SynthesisInput(
                system_instruction=TEMPLATE_SEPARATOR.join(state.deferred), user_message=user
            )

        # Nothing gathered: answer from the model's own knowledge
        if not state.history:
            return SynthesisInput(system_instruction=self.base_prompt, user_message=question)

        user = f"{GROUNDED_INSTRUCTION}\n\nQuestion: {question}\n\nResearch:\n{research}"
        return SynthesisInput(system_instruction=self.base_prompt, user_message=user)
