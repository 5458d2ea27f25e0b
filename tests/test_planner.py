"""Tests for the three planning strategies."""

import json

import pytest
from conftest import ScriptedProvider

from mcpilot.agent.planner import (
    FILLER_ANSWER,
    GREETING_ANSWER,
    FullPlanner,
    MinimalPlanner,
    load_planner,
)
from mcpilot.core.errors import TransportError
from mcpilot.core.schema import (
    MAX_STEPS,
    Plan,
    PlanningMode,
)

CAPS = "TOOLS: search\n"


def _planner(mode: str, reply: str) -> tuple:
    provider = ScriptedProvider(completions=[reply])
    return load_planner(mode, provider), provider


@pytest.mark.parametrize("text", ["hi", "hello", "Thanks!", "ok.", "heyyy", "  Thank you  ", "bye?!"])
def test_minimal_trivial_inputs(text: str) -> None:
    """Greetings and acknowledgements get a canned direct answer and zero budget."""
    plan = MinimalPlanner().plan(text, CAPS)

    assert plan.is_trivial
    assert plan.budget == 0
    assert plan.direct_answer == GREETING_ANSWER


@pytest.mark.parametrize("text", ["hi, what's the weather in Paris?", "search AI trends", "okay then explain"])
def test_minimal_other_inputs(text: str) -> None:
    """Everything else self-directs with the full step budget."""
    plan = MinimalPlanner().plan(text, CAPS)

    assert not plan.is_trivial
    assert plan.budget == MAX_STEPS
    assert plan.direct_answer is None
    assert plan.intent == text


def test_balanced_parses_reply() -> None:
    """A well-formed classification is turned into a plan and the capabilities are sent."""
    reply = json.dumps(
        {"complexity": "simple", "step_budget": 2, "intent": "Look it up.", "direct_answer": None}
    )
    planner, provider = _planner("balanced", reply)

    plan = planner.plan("What is MCP?", CAPS)

    assert plan == Plan(
        mode=PlanningMode.BALANCED, complexity="simple", budget=2, intent="Look it up."
    )
    system, user = provider.complete_calls[0]
    assert CAPS in system
    assert user == "Question: What is MCP?"


def test_balanced_unparseable_falls_back() -> None:
    """Garbage never raises; the deterministic fallback is returned."""
    planner, _ = _planner("balanced", "I think this is a moderate question!")

    plan = planner.plan("Compare A and B", CAPS)

    assert plan.complexity == "moderate"
    assert plan.budget == 4
    assert plan.intent == "Compare A and B"
    assert plan.steps == ()
    assert plan.direct_answer is None


@pytest.mark.parametrize("budget, expected", [(99, MAX_STEPS), (-3, 0)])
def test_budget_is_clamped(budget: int, expected: int) -> None:
    """Out-of-range budgets are clamped into [0, MAX_STEPS]."""
    reply = json.dumps({"complexity": "complex", "step_budget": budget, "intent": "x"})
    planner, _ = _planner("balanced", reply)

    assert planner.plan("q", CAPS).budget == expected


def test_zero_budget_without_answer_gets_filler() -> None:
    """A zero budget always comes with a direct answer."""
    reply = '```json\n{"complexity": "trivial", "step_budget": 0, "intent": "chit-chat"}\n```'
    planner, _ = _planner("balanced", reply)

    plan = planner.plan("how are you", CAPS)

    assert plan.is_trivial
    assert plan.direct_answer == FILLER_ANSWER


def test_full_parses_steps_inside_prose() -> None:
    """The JSON object is found even when wrapped in prose; steps beyond the budget are cut."""
    body = {
        "complexity": "moderate",
        "step_budget": 2,
        "intent": "Research trends",
        "planned_steps": ["search trends", "search context", "extra"],
        "direct_answer": None,
    }
    planner, provider = _planner("full", "Here is the plan: " + json.dumps(body) + " Good luck.")

    plan = planner.plan("What are the AI trends?", CAPS)

    assert plan.mode is PlanningMode.FULL
    assert plan.budget == 2
    assert plan.steps == ("search trends", "search context")
    assert provider.complete_calls[0][1] == "User question: What are the AI trends?"


def test_full_fallback_has_generic_steps() -> None:
    """The full-mode fallback supplies four generic research steps."""
    planner, _ = _planner("full", "")

    plan = planner.plan("anything", CAPS)

    assert plan.budget == 4
    assert plan.steps == FullPlanner.FALLBACK_STEPS
    assert len(plan.steps) == 4


def test_provider_failure_propagates() -> None:
    """Only parse errors are recovered; transport errors abort planning."""

    class Broken(ScriptedProvider):
        def complete(self, system_instruction, user_message):  # type: ignore[override]
            raise TransportError("down")

    with pytest.raises(TransportError):
        load_planner("balanced", Broken()).plan("q", CAPS)


def test_llm_modes_need_a_provider() -> None:
    """Balanced and full planning cannot be built without an LLM."""
    with pytest.raises(ValueError):
        load_planner(PlanningMode.FULL)
    with pytest.raises(ValueError):
        load_planner("turbo")


def test_braces_inside_strings_are_parsed() -> None:
    """A valid reply whose text contains braces keeps the model's own budget."""
    reply = '{"complexity": "simple", "step_budget": 2, "intent": "Explain what } means in JSON"}'
    planner, _ = _planner("balanced", reply)

    plan = planner.plan("What does } mean?", CAPS)

    assert plan.complexity == "simple"
    assert plan.budget == 2
    assert plan.intent == "Explain what } means in JSON"


def test_braces_inside_strings_with_surrounding_prose() -> None:
    """Object extraction from prose respects string literals."""
    body = {
        "complexity": "moderate",
        "step_budget": 3,
        "intent": "Format {name} placeholders",
        "planned_steps": ["look up {x}", "summarise"],
    }
    planner, _ = _planner("full", "Sure! " + json.dumps(body) + " {trailing}")

    plan = planner.plan("q", CAPS)

    assert plan.budget == 3
    assert plan.intent == "Format {name} placeholders"
    assert plan.steps == ("look up {x}", "summarise")
