"""
ExecutionRecorder Base Interface

Audit records for executions and their steps. The orchestrator writes status,
checkpoints and results through this interface; storage itself is owned by
the host application.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, List, Any, Optional

from ..schemas.execution import ExecutionStatus, StepStatus


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Records
# =============================================================================

@dataclass
class ExecutionRecord:
    """Serializable audit record for one workflow execution."""
    execution_id: str
    workflow_id: str
    tenant_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    input: Dict[str, Any] = field(default_factory=dict)
    state: Optional[Dict[str, Any]] = None
    current_step: int = 0
    total_steps: int = 0
    total_cost_usd: float = 0.0
    total_tokens: int = 0
    output: Any = None
    error: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "tenant_id": self.tenant_id,
            "status": self.status.value,
            "input": self.input,
            "state": self.state,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "total_cost_usd": self.total_cost_usd,
            "total_tokens": self.total_tokens,
            "output": self.output,
            "error": self.error,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionRecord":
        """Create from dictionary."""
        return cls(
            execution_id=data["execution_id"],
            workflow_id=data["workflow_id"],
            tenant_id=data["tenant_id"],
            status=ExecutionStatus(data.get("status", ExecutionStatus.PENDING.value)),
            input=data.get("input") or {},
            state=data.get("state"),
            current_step=data.get("current_step", 0),
            total_steps=data.get("total_steps", 0),
            total_cost_usd=data.get("total_cost_usd", 0.0),
            total_tokens=data.get("total_tokens", 0),
            output=data.get("output"),
            error=data.get("error"),
            started_at=_from_iso(data.get("started_at")),
            completed_at=_from_iso(data.get("completed_at")),
        )


@dataclass
class StepExecutionRecord:
    """Serializable audit record for one step of an execution."""
    step_execution_id: str
    execution_id: str
    step_slug: str
    step_number: int
    status: StepStatus = StepStatus.PENDING
    resolved_input: Optional[Dict[str, Any]] = None
    tool_output: Any = None
    reasoning_output: Any = None
    error: Optional[Dict[str, Any]] = None
    retry_count: int = 0
    cost_usd: float = 0.0
    tokens: int = 0
    duration_ms: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "step_execution_id": self.step_execution_id,
            "execution_id": self.execution_id,
            "step_slug": self.step_slug,
            "step_number": self.step_number,
            "status": self.status.value,
            "resolved_input": self.resolved_input,
            "tool_output": self.tool_output,
            "reasoning_output": self.reasoning_output,
            "error": self.error,
            "retry_count": self.retry_count,
            "cost_usd": self.cost_usd,
            "tokens": self.tokens,
            "duration_ms": self.duration_ms,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }


# =============================================================================
# Updates
# =============================================================================

class _Update:
    """Partial update: fields left as None are not written."""

    def changes(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class ExecutionUpdate(_Update):
    status: Optional[ExecutionStatus] = None
    state: Optional[Dict[str, Any]] = None
    current_step: Optional[int] = None
    total_cost_usd: Optional[float] = None
    total_tokens: Optional[int] = None
    output: Any = None
    error: Optional[Dict[str, Any]] = None
    completed_at: Optional[datetime] = None


@dataclass
class StepExecutionUpdate(_Update):
    status: Optional[StepStatus] = None
    resolved_input: Optional[Dict[str, Any]] = None
    tool_output: Any = None
    reasoning_output: Any = None
    error: Optional[Dict[str, Any]] = None
    retry_count: Optional[int] = None
    cost_usd: Optional[float] = None
    tokens: Optional[int] = None
    duration_ms: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# =============================================================================
# Recorder Interface
# =============================================================================

class ExecutionRecorder(ABC):
    """
    Abstract interface for execution audit persistence.

    Implementations:
    - InMemoryExecutionRecorder: For testing and embedding (no persistence)
    """

    @abstractmethod
    async def create_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        """Store a new execution record."""
        pass

    @abstractmethod
    async def update_execution(
        self,
        execution_id: str,
        update: ExecutionUpdate,
    ) -> Optional[ExecutionRecord]:
        """Apply a partial update. Returns the updated record, or None if unknown."""
        pass

    @abstractmethod
    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Get an execution record by ID."""
        pass

    @abstractmethod
    async def create_step_execution(self, record: StepExecutionRecord) -> StepExecutionRecord:
        """Store a new step execution record."""
        pass

    @abstractmethod
    async def update_step_execution(
        self,
        step_execution_id: str,
        update: StepExecutionUpdate,
    ) -> Optional[StepExecutionRecord]:
        """Apply a partial update to a step record."""
        pass

    @abstractmethod
    async def list_step_executions(self, execution_id: str) -> List[StepExecutionRecord]:
        """List step records of an execution, ordered by step number."""
        pass
