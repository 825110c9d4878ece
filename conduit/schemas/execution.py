"""
Conduit Execution Schemas

Value types produced while running a workflow: per-step results recorded into
execution state, executor outcomes for auditing, and the final workflow result.
"""

from __future__ import annotations
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# Status
# =============================================================================

class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING)


class StepStatus(str, Enum):
    """Status of a single step."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================================
# Step Errors & Results
# =============================================================================

@dataclass(frozen=True)
class StepError:
    """Classified step error."""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepError":
        return cls(
            code=data["code"],
            message=data.get("message", ""),
            details=data.get("details"),
        )


@dataclass(frozen=True)
class StepResult:
    """
    A step's entry in execution state.

    Recorded once per slug and never replaced.
    """
    output: Any
    status: StepStatus
    reasoning: Optional[Any] = None
    error: Optional[StepError] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "output": self.output,
            "status": self.status.value,
        }
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepResult":
        error = data.get("error")
        return cls(
            output=data.get("output"),
            status=StepStatus(data["status"]),
            reasoning=data.get("reasoning"),
            error=StepError.from_dict(error) if error else None,
        )


@dataclass
class StepOutcome:
    """Everything the step executor reports about one step, for state and audit."""
    status: StepStatus
    output: Any = None
    reasoning: Optional[Any] = None
    error: Optional[StepError] = None
    resolved_input: Optional[Dict[str, Any]] = None
    retry_count: int = 0
    attempts: int = 0
    cost_usd: float = 0.0
    tokens: int = 0
    duration_ms: int = 0
    skip_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != StepStatus.FAILED

    def to_step_result(self) -> StepResult:
        return StepResult(
            output=self.output,
            status=self.status,
            reasoning=self.reasoning,
            error=self.error,
        )


# =============================================================================
# Workflow Result
# =============================================================================

@dataclass
class StepSummary:
    """Per-step line in the result metadata."""
    name: str
    slug: str
    status: StepStatus
    duration_ms: int = 0
    cost_usd: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "slug": self.slug,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "cost_usd": self.cost_usd,
        }


@dataclass
class WorkflowError:
    """Workflow-level error."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


@dataclass
class ExecutionMeta:
    """Run metadata returned alongside the output."""
    workflow: str
    execution_id: Optional[str] = None
    total_steps: int = 0
    completed_steps: int = 0
    total_cost_usd: float = 0.0
    total_tokens: int = 0
    duration_ms: int = 0
    steps: List[StepSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow,
            "execution_id": self.execution_id,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "total_cost_usd": self.total_cost_usd,
            "total_tokens": self.total_tokens,
            "duration_ms": self.duration_ms,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class WorkflowResult:
    """Final result of a workflow run."""
    success: bool
    status: ExecutionStatus
    meta: ExecutionMeta
    data: Any = None
    error: Optional[WorkflowError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "data": self.data,
            "error": self.error.to_dict() if self.error else None,
            "meta": self.meta.to_dict(),
        }
