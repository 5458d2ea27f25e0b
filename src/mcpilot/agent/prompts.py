"""Prompt texts and prompt builders used by the planner and the execution loop."""

from typing import (
    List,
    Sequence,
)

from mcpilot.core.schema import (
    MAX_STEPS,
    Plan,
    PlanningMode,
)
from mcpilot.mcp.registry import (
    PROMPT_PREFIX,
    CapabilityRegistry,
)

GOAL_ACHIEVED = "[GOAL_ACHIEVED]"
CONTINUE = "[CONTINUE]"

CLASSIFIER_PROMPT = """\
You are a query classifier. Output ONLY valid JSON, no markdown, no explanation.
Format:
{{
  "complexity": "<trivial|simple|moderate|complex>",
  "step_budget": <0-{max_steps}>,
  "intent": "<one sentence>",
  "direct_answer": <null or "string for trivial only">
}}
Rules: trivial->budget=0; simple->1-2; moderate->3-5; complex->6-{max_steps}.
Available capabilities:
{capabilities}
"""

PLANNER_PROMPT = """\
You are a planning agent. Output ONLY valid JSON, no markdown, no extra text.
Format:
{{
  "complexity": "<trivial|simple|moderate|complex>",
  "step_budget": <0-{max_steps}>,
  "intent": "<one sentence>",
  "planned_steps": ["<step 1: tool + action>", ...],
  "direct_answer": <null or "string for trivial only">
}}
Rules: trivial->0; simple->1-2; moderate->3-5; complex->6-{max_steps}.
planned_steps must have EXACTLY step_budget entries.
Each step must name a specific tool from: {capabilities}
"""

REFLECTION_SYSTEM = "You are a reflection agent. Be concise."

GROUNDED_INSTRUCTION = (
    "Answer using ONLY the research below. Be comprehensive. Do not invent facts."
)


def classifier_prompt(capabilities: str) -> str:
    return CLASSIFIER_PROMPT.format(max_steps=MAX_STEPS, capabilities=capabilities)


def planner_prompt(capabilities: str) -> str:
    return PLANNER_PROMPT.format(max_steps=MAX_STEPS, capabilities=capabilities)


def reflection_message(question: str, intent: str, history: Sequence[str], remaining: int) -> str:
    """User message for the reflection judgment."""
    return (
        "Assess progress in 2-3 sentences.\n"
        f"Question: {question}\n"
        f"Goal: {intent}\n"
        f"Steps remaining: {remaining}\n"
        "History:\n" + "\n".join(history) + f"\n\nEnd with exactly {GOAL_ACHIEVED} or {CONTINUE}."
    )


def truncate(text: str, limit: int) -> str:
    """Shorten *text* to at most *limit* characters, marking the cut with an ellipsis."""
    return text if len(text) <= limit else text[: max(limit - 3, 0)] + "..."


def _first_line(text: str) -> str:
    return text.strip().split("\n")[0].strip() if text and text.strip() else ""


def base_system_prompt(registry: CapabilityRegistry) -> str:
    """Describe every registered tool and prompt template to the collaborator."""
    parts: List[str] = ["You are a capable AI assistant backed by MCP server tools.\n"]

    if registry.tool_names:
        parts.append("## Available Tools")
        for name in registry.tool_names:
            definition = registry.definition(name)
            desc = _first_line(definition.description) if definition else ""
            parts.append(f"- **{name}**" + (f": {desc}" if desc else ""))
        parts.append("")

    if registry.prompts:
        parts.append("## Prompt Templates (shape final answer, not data sources)")
        parts.append(
            f"Calling {PROMPT_PREFIX}* defers the template to synthesis. Still use data tools.\n"
        )
        for prompt in registry.prompts:
            desc = prompt.description.strip().replace("\n", " ")
            parts.append(f"- **{prompt.name}**" + (f": {desc}" if desc else ""))
            parts.append(f"  -> call: {PROMPT_PREFIX}{prompt.name}")
            for arg in prompt.arguments:
                flag = "required" if arg.required else "optional"
                arg_desc = arg.description.strip()
                parts.append(f"    - {arg.name} ({flag})" + (f": {arg_desc}" if arg_desc else ""))
            parts.append("")

    return "\n".join(parts) + "\n"


def execution_prompt(base: str, plan: Plan, remaining: int) -> str:
    """Base prompt plus the execution block reflecting the current remaining budget."""
    lines = [base, "## Execution"]
    if plan.mode is not PlanningMode.MINIMAL:
        lines.append(f"Goal: {plan.intent}")
    if plan.steps:
        lines.append("Planned steps:")
        lines.extend(f"{i}. {step}" for i, step in enumerate(plan.steps, start=1))
    lines.append(f"Steps remaining: {remaining}\n")
    lines.append(f"- Do NOT exceed {remaining} tool-call turns.")
    lines.append("- Never repeat a tool call with the same arguments.")
    lines.append("- Stop as soon as you have enough to answer.")
    return "\n".join(lines) + "\n"


def history_block(history: Sequence[str], item_limit: int) -> str:
    """Truncated view of the observations gathered so far."""
    if not history:
        return ""
    return "\n## Gathered so far:\n" + "".join(truncate(h, item_limit) + "\n" for h in history)
