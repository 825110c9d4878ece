"""
Conduit - Multi-step Workflow Orchestration Engine

Conduit executes declaratively-defined, linear workflows. Each step invokes an
external capability, runs a structured reasoning call against a language
model, or both, with an immutable execution state threaded between steps.

Conduit provides:
- A {{path}} expression language for referencing earlier step results
- Per-step conditional skipping
- Cost and wall-clock budgets enforced between steps
- Capability dispatch with bounded retry and exponential backoff
- Inter-step reasoning with structured JSON output

Conduit does NOT:
- Run steps concurrently or support branching graphs
- Persist or resume executions across process restarts
- Serve HTTP or provide a UI
"""

__version__ = "0.1.0"

from .core.engine import WorkflowEngine
from .core.orchestrator import WorkflowOrchestrator, WorkflowDefinitionError
from .core.step_executor import StepExecutor
from .core.capabilities import CapabilityDispatcher, CapabilityResult, TenantContext
from .core.http_gateway import HttpCapabilityGateway
from .reasoning.reasoner import InterStepReasoner
from .schemas.execution import ExecutionStatus, StepStatus, StepResult, WorkflowResult
from .schemas.workflow import (
    Workflow,
    WorkflowStep,
    WorkflowStatus,
    CapabilityKind,
    CapabilityRef,
    ErrorPolicy,
)
from .state.execution_state import ExecutionState
from .validation.workflow_validator import WorkflowValidator, workflow_validator

__all__ = [
    # Engine
    "WorkflowEngine",
    "WorkflowOrchestrator",
    "WorkflowDefinitionError",
    "StepExecutor",
    # Capabilities
    "CapabilityDispatcher",
    "CapabilityResult",
    "TenantContext",
    "HttpCapabilityGateway",
    # Reasoning
    "InterStepReasoner",
    # Execution
    "ExecutionStatus",
    "StepStatus",
    "StepResult",
    "WorkflowResult",
    "ExecutionState",
    # Workflow
    "Workflow",
    "WorkflowStep",
    "WorkflowStatus",
    "CapabilityKind",
    "CapabilityRef",
    "ErrorPolicy",
    # Validation
    "WorkflowValidator",
    "workflow_validator",
]
