"""
Conduit Budget Enforcer

Cost and wall-clock ceilings checked between steps.

Only totals accumulated by prior steps are considered; a running step is never
interrupted. Both limits are inclusive: reaching the limit exactly is a
violation.
"""

from __future__ import annotations
from typing import Callable, Optional
from dataclasses import dataclass, field
from enum import Enum
import time

from ..schemas.workflow import BudgetLimits
from ..config import get_config


# =============================================================================
# Types
# =============================================================================

class BudgetViolationType(str, Enum):
    COST_LIMIT_EXCEEDED = "cost_limit_exceeded"
    DURATION_LIMIT_EXCEEDED = "duration_limit_exceeded"


@dataclass(frozen=True)
class EffectiveLimits:
    """Budget limits after filling gaps from configured defaults."""
    max_cost_usd: float
    max_duration_seconds: float


@dataclass(frozen=True)
class BudgetViolation:
    type: BudgetViolationType
    message: str
    limit: float
    current: float

    @property
    def code(self) -> str:
        return self.type.value.upper()

    @property
    def is_duration(self) -> bool:
        return self.type == BudgetViolationType.DURATION_LIMIT_EXCEEDED


@dataclass
class BudgetCheckResult:
    allowed: bool
    violation: Optional[BudgetViolation] = None


@dataclass
class BudgetContext:
    """Running totals for one orchestrator run."""
    started_at: float = field(default_factory=time.monotonic)
    total_cost_usd: float = 0.0
    total_tokens: int = 0
    current_step: int = 0
    total_steps: int = 0

    def add(self, cost_usd: float, tokens: int) -> None:
        self.total_cost_usd += cost_usd
        self.total_tokens += tokens

    def elapsed_seconds(self, clock: Callable[[], float] = time.monotonic) -> float:
        return clock() - self.started_at


# =============================================================================
# Checks
# =============================================================================

def resolve_effective_limits(budget: Optional[BudgetLimits] = None) -> EffectiveLimits:
    """Apply workflow overrides on top of configured defaults."""
    defaults = get_config().budget
    budget = budget or BudgetLimits()
    return EffectiveLimits(
        max_cost_usd=(
            budget.max_cost_usd if budget.max_cost_usd is not None
            else defaults.max_cost_usd
        ),
        max_duration_seconds=(
            budget.max_duration_seconds if budget.max_duration_seconds is not None
            else defaults.max_duration_seconds
        ),
    )


def check_budget_limits(
    limits: EffectiveLimits,
    context: BudgetContext,
    clock: Callable[[], float] = time.monotonic,
) -> BudgetCheckResult:
    """Check cost first, then duration."""
    if context.total_cost_usd >= limits.max_cost_usd:
        return BudgetCheckResult(
            allowed=False,
            violation=BudgetViolation(
                type=BudgetViolationType.COST_LIMIT_EXCEEDED,
                message=(
                    f"Workflow cost limit exceeded: ${context.total_cost_usd:.4f} >= "
                    f"${limits.max_cost_usd:.2f} limit. "
                    f"Stopped before step {context.current_step} of {context.total_steps}."
                ),
                limit=limits.max_cost_usd,
                current=context.total_cost_usd,
            ),
        )

    elapsed = context.elapsed_seconds(clock)
    if elapsed >= limits.max_duration_seconds:
        return BudgetCheckResult(
            allowed=False,
            violation=BudgetViolation(
                type=BudgetViolationType.DURATION_LIMIT_EXCEEDED,
                message=(
                    f"Workflow duration limit exceeded: {elapsed:.0f}s >= "
                    f"{limits.max_duration_seconds:.0f}s limit. "
                    f"Stopped before step {context.current_step} of {context.total_steps}."
                ),
                limit=limits.max_duration_seconds,
                current=elapsed,
            ),
        )

    return BudgetCheckResult(allowed=True)
