"""Conduit Core Module - Execution engine components."""

from .capabilities import (
    ActionInvoker,
    AgenticToolInvoker,
    CapabilityDispatcher,
    CapabilityResult,
    CompositeToolInvoker,
    TenantContext,
)
from .engine import WorkflowEngine
from .http_gateway import HttpCapabilityGateway
from .orchestrator import WorkflowDefinitionError, WorkflowOrchestrator
from .step_executor import StepExecutor

__all__ = [
    "ActionInvoker",
    "AgenticToolInvoker",
    "CapabilityDispatcher",
    "CapabilityResult",
    "CompositeToolInvoker",
    "TenantContext",
    "WorkflowEngine",
    "HttpCapabilityGateway",
    "WorkflowDefinitionError",
    "WorkflowOrchestrator",
    "StepExecutor",
]
