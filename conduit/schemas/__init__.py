"""Conduit Schemas Package - Workflow definitions and execution values."""

from .execution import (
    ExecutionStatus,
    StepStatus,
    StepError,
    StepResult,
    StepOutcome,
    StepSummary,
    WorkflowError,
    ExecutionMeta,
    WorkflowResult,
)
from .workflow import (
    Workflow,
    WorkflowStep,
    WorkflowStatus,
    CapabilityKind,
    CapabilityRef,
    ErrorPolicy,
    RetryPolicy,
    SkipWhen,
    StepCondition,
    ReasoningConfig,
    BudgetLimits,
    OutputField,
    OutputMapping,
)

__all__ = [
    # Execution
    "ExecutionStatus",
    "StepStatus",
    "StepError",
    "StepResult",
    "StepOutcome",
    "StepSummary",
    "WorkflowError",
    "ExecutionMeta",
    "WorkflowResult",
    # Workflow
    "Workflow",
    "WorkflowStep",
    "WorkflowStatus",
    "CapabilityKind",
    "CapabilityRef",
    "ErrorPolicy",
    "RetryPolicy",
    "SkipWhen",
    "StepCondition",
    "ReasoningConfig",
    "BudgetLimits",
    "OutputField",
    "OutputMapping",
]
