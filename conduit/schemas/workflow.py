"""
Conduit Workflow Schema

Declarative workflow definitions: a linear sequence of steps, each invoking a
capability, running a reasoning call, or both. Definitions are frozen once
loaded so a run can never observe them changing.
"""

from __future__ import annotations
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from uuid import uuid4


MAX_STEPS = 20

SLUG_PATTERN = r"^[a-z_][a-z0-9_-]*$"


# =============================================================================
# Enums
# =============================================================================

class WorkflowStatus(str, Enum):
    """Lifecycle status of a workflow definition."""
    DRAFT = "draft"
    ACTIVE = "active"
    DISABLED = "disabled"


class CapabilityKind(str, Enum):
    """
    Kinds of invocable capabilities.

    ACTION:    a directly-addressable action, identified as "namespace/name"
    COMPOSITE: a composed multi-action tool
    AGENTIC:   an LLM-driven tool that takes a natural-language task
    """
    ACTION = "action"
    COMPOSITE = "composite"
    AGENTIC = "agentic"


class ErrorPolicy(str, Enum):
    """What the orchestrator does after a step fails."""
    STOP = "stop"                      # Halt further steps
    STOP_REMAINING = "stop-remaining"  # Same as STOP
    CONTINUE = "continue"              # Proceed to the next step


class SkipWhen(str, Enum):
    """Which truth value of a condition causes the step to be skipped."""
    TRUTHY = "truthy"
    FALSY = "falsy"


# =============================================================================
# Step Components
# =============================================================================

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class CapabilityRef(_Frozen):
    """Reference to the capability a step invokes."""
    kind: CapabilityKind
    identifier: str = Field(..., min_length=1)


class RetryPolicy(_Frozen):
    """Bounded retry with exponential backoff."""
    max_retries: int = Field(default=0, ge=0, le=5)
    backoff_ms: int = Field(default=1000, ge=100, le=30000)


class StepCondition(_Frozen):
    """Skip condition evaluated before a step runs."""
    expression: str = Field(..., min_length=1)
    skip_when: SkipWhen = SkipWhen.TRUTHY


class ReasoningConfig(_Frozen):
    """Language-model settings for reasoning calls."""
    provider: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    max_tokens: int = Field(default=2000, ge=100, le=8000)
    output_schema: Optional[Dict[str, Any]] = None


class BudgetLimits(_Frozen):
    """Per-workflow budget overrides. None falls back to configured defaults."""
    max_cost_usd: Optional[float] = Field(default=None, gt=0)
    max_duration_seconds: Optional[float] = Field(default=None, gt=0)


class OutputField(_Frozen):
    """One named field of the final workflow output."""
    source: str = Field(..., min_length=1)
    description: Optional[str] = None


class OutputMapping(_Frozen):
    """Projection of the final execution state onto named output fields."""
    fields: Dict[str, OutputField] = Field(default_factory=dict)
    include_meta: bool = False


# =============================================================================
# Workflow Step
# =============================================================================

class WorkflowStep(_Frozen):
    """
    A single step within a workflow.

    Steps without a capability are reasoning-only.
    """
    step_number: int = Field(..., ge=1, le=MAX_STEPS)
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=100)
    description: Optional[str] = None

    # Capability (absent for reasoning-only steps)
    capability: Optional[CapabilityRef] = None
    input_mapping: Dict[str, Any] = Field(default_factory=dict)

    # Error handling
    on_error: ErrorPolicy = ErrorPolicy.STOP
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    # Timeout per capability attempt (None uses the configured default)
    timeout_seconds: Optional[int] = Field(default=None, ge=5, le=1800)

    # Conditional execution
    condition: Optional[StepCondition] = None

    # Reasoning
    reasoning_enabled: bool = False
    reasoning_prompt: Optional[str] = None
    reasoning_config: Optional[ReasoningConfig] = None

    @model_validator(mode="after")
    def validate_has_work(self) -> "WorkflowStep":
        if self.capability is None and not self.reasoning_enabled:
            raise ValueError(
                f"Step '{self.slug}' needs a capability or reasoning enabled"
            )
        return self

    @property
    def is_reasoning_only(self) -> bool:
        return self.capability is None

    @property
    def wants_reasoning(self) -> bool:
        """Reasoning runs only when enabled and given instructions."""
        return self.reasoning_enabled and bool(self.reasoning_prompt)


# =============================================================================
# Main Workflow Schema
# =============================================================================

class Workflow(_Frozen):
    """
    Conduit Workflow Schema.

    An ordered list of steps numbered 1..N with unique slugs, plus budget,
    default reasoning settings and an optional output projection.
    """
    id: str = Field(default_factory=lambda: f"wf_{uuid4().hex[:8]}")
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: WorkflowStatus = WorkflowStatus.ACTIVE

    steps: List[WorkflowStep] = Field(default_factory=list, max_length=MAX_STEPS)

    budget: BudgetLimits = Field(default_factory=BudgetLimits)
    reasoning_config: Optional[ReasoningConfig] = None
    output_mapping: Optional[OutputMapping] = None

    @field_validator("steps")
    @classmethod
    def validate_steps(cls, v: List[WorkflowStep]) -> List[WorkflowStep]:
        ordered = sorted(v, key=lambda s: s.step_number)

        for expected, step in enumerate(ordered, start=1):
            if step.step_number != expected:
                raise ValueError(
                    f"Step numbers must be contiguous from 1 "
                    f"(expected {expected}, got {step.step_number})"
                )

        seen = set()
        for step in ordered:
            if step.slug in seen:
                raise ValueError(f"Duplicate step slug: '{step.slug}'")
            seen.add(step.slug)

        return ordered

    @property
    def slugs(self) -> List[str]:
        return [s.slug for s in self.steps]

    def get_step(self, slug: str) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.slug == slug:
                return step
        return None
