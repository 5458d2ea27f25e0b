"""Append-only record of the execution loop, kept for observability and tests."""

from typing import (
    Iterator,
    List,
)

from mcpilot.core.schema import ReasoningStep

_RULE = "─" * 48


class ReasoningTrace:
    """Ordered :class:`ReasoningStep` entries; steps are never modified once appended."""

    def __init__(self) -> None:
        self._steps: List[ReasoningStep] = []

    def append(self, step: ReasoningStep) -> None:
        self._steps.append(step)

    @property
    def steps(self) -> List[ReasoningStep]:
        return list(self._steps)

    @property
    def goal_achieved(self) -> bool:
        return bool(self._steps) and self._steps[-1].goal_achieved

    def __iter__(self) -> Iterator[ReasoningStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> ReasoningStep:
        return self._steps[index]

    def render(self) -> str:
        """Boxed, human-readable rendering of every step."""
        return "".join(render_step(step) for step in self._steps)


def render_step(step: ReasoningStep) -> str:
    lines = [f"┌─── Step {step.step} {_RULE[:32]}"]
    for i, action in enumerate(step.actions):
        lines.append(f"│ ACTION:      {action}")
        if i < len(step.observations):
            obs = step.observations[i]
            lines.append(f"│ OBSERVATION: {obs if len(obs) <= 120 else obs[:117] + '...'}")
    if step.reflection.strip():
        lines.append(f"│ REFLECTION:  {step.reflection}")
    lines.append(f"│ GOAL MET:    {step.goal_achieved}")
    lines.append(f"└{_RULE}")
    return "\n".join(lines) + "\n"
