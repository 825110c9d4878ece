"""
Conduit Execution State

Immutable accumulated state of one workflow run: the run input plus one
recorded result per step slug. Every update returns a new state value that
shares the existing entries; nothing is ever mutated in place.
"""

from __future__ import annotations
from typing import Dict, List, Any, Mapping, Optional
from dataclasses import dataclass, field
from types import MappingProxyType
import copy
import json
import logging

from ..schemas.execution import StepResult, StepStatus


logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 2000


class StateError(Exception):
    """Invalid state transition."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


# =============================================================================
# Execution State
# =============================================================================

@dataclass(frozen=True, eq=False)
class ExecutionState:
    """
    Read-only view of a run's input and recorded step results.

    Both mappings are exposed as MappingProxyType so holders of a state value
    cannot alter it. Step entries are kept in recording order.
    """
    input: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    steps: Mapping[str, StepResult] = field(default_factory=lambda: MappingProxyType({}))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExecutionState):
            return NotImplemented
        return dict(self.input) == dict(other.input) and dict(self.steps) == dict(other.steps)

    def __repr__(self) -> str:
        return f"ExecutionState(input={dict(self.input)!r}, steps={list(self.steps)!r})"


def create_initial_state(input: Optional[Dict[str, Any]] = None) -> ExecutionState:
    """Create the state for a new run. The input is copied."""
    return ExecutionState(
        input=MappingProxyType(copy.deepcopy(dict(input or {}))),
        steps=MappingProxyType({}),
    )


def record_step_result(
    state: ExecutionState,
    slug: str,
    result: StepResult,
) -> ExecutionState:
    """
    Return a new state with the step's result added.

    Raises:
        StateError: If a result for the slug was already recorded
    """
    if slug in state.steps:
        raise StateError(
            "STEP_ALREADY_RECORDED",
            f"Step '{slug}' already has a recorded result",
        )

    frozen = StepResult(
        output=copy.deepcopy(result.output),
        status=result.status,
        reasoning=copy.deepcopy(result.reasoning),
        error=result.error,
    )
    steps = dict(state.steps)
    steps[slug] = frozen
    return ExecutionState(input=state.input, steps=MappingProxyType(steps))


# =============================================================================
# Queries
# =============================================================================

def has_step_result(state: ExecutionState, slug: str) -> bool:
    return slug in state.steps


def get_step_result(state: ExecutionState, slug: str) -> Optional[StepResult]:
    return state.steps.get(slug)


def get_recorded_step_slugs(state: ExecutionState) -> List[str]:
    return list(state.steps)


def get_completed_step_slugs(state: ExecutionState) -> List[str]:
    """Slugs of completed steps, in recording order."""
    return [
        slug for slug, result in state.steps.items()
        if result.status == StepStatus.COMPLETED
    ]


def get_status_counts(state: ExecutionState) -> Dict[str, int]:
    """Count recorded steps by terminal status."""
    counts = {
        StepStatus.COMPLETED.value: 0,
        StepStatus.FAILED.value: 0,
        StepStatus.SKIPPED.value: 0,
    }
    for result in state.steps.values():
        if result.status.value in counts:
            counts[result.status.value] += 1
    return counts


def _render(value: Any) -> str:
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


def _capped(label: str, value: Any, max_chars: int) -> str:
    text = _render(value)
    if len(text) > max_chars:
        return f"{label} (truncated): {text[:max_chars]}..."
    return f"{label}: {text}"


def create_state_summary(state: ExecutionState, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    """
    Render a human-readable summary for inclusion in reasoning prompts.

    Each step's output and reasoning are JSON-rendered and capped at
    ``max_chars`` characters.
    """
    parts: List[str] = ["## Workflow Input", _render(dict(state.input))]

    if state.steps:
        parts.append("\n## Step Results")
        for slug, result in state.steps.items():
            parts.append(f"\n### Step: {slug} ({result.status.value})")

            if result.error is not None:
                parts.append(f"Error: {result.error.message}")

            if result.output is not None:
                parts.append(_capped("Output", result.output, max_chars))

            if result.reasoning is not None:
                parts.append(_capped("Reasoning", result.reasoning, max_chars))

    return "\n".join(parts)


# =============================================================================
# Persistence Boundary
# =============================================================================

def serialize_state(state: ExecutionState) -> Dict[str, Any]:
    """Convert to plain nested dicts for the persistence collaborator."""
    return {
        "input": copy.deepcopy(dict(state.input)),
        "steps": {slug: copy.deepcopy(r.to_dict()) for slug, r in state.steps.items()},
    }


def deserialize_state(data: Optional[Dict[str, Any]]) -> ExecutionState:
    """Rebuild state from its serialized form. Missing sections default to empty."""
    data = data or {}
    steps = {
        slug: StepResult.from_dict(copy.deepcopy(raw))
        for slug, raw in (data.get("steps") or {}).items()
    }
    return ExecutionState(
        input=MappingProxyType(copy.deepcopy(data.get("input") or {})),
        steps=MappingProxyType(steps),
    )
