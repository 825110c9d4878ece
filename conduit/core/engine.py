"""
Conduit Workflow Engine (High-Level API)

Provides the public contract:
- Invoke
- CancelExecution
- QueryExecution
"""

from __future__ import annotations
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import logging

from ..persistence.base import ExecutionRecord, ExecutionRecorder, ExecutionUpdate
from ..persistence.memory import InMemoryExecutionRecorder
from ..reasoning.reasoner import InterStepReasoner
from ..schemas.execution import ExecutionMeta, ExecutionStatus, WorkflowError, WorkflowResult
from ..schemas.workflow import Workflow, WorkflowStatus
from .capabilities import CapabilityDispatcher, TenantContext
from .orchestrator import WorkflowDefinitionError, WorkflowOrchestrator
from .step_executor import StepExecutor


logger = logging.getLogger(__name__)


class WorkflowEngine:
    """
    High-level API for the Conduit execution engine.

    Wires dispatcher, reasoner, executor, orchestrator and recorder together.
    """

    def __init__(
        self,
        dispatcher: CapabilityDispatcher,
        reasoner: Optional[InterStepReasoner] = None,
        recorder: Optional[ExecutionRecorder] = None,
        executor: Optional[StepExecutor] = None,
    ):
        self._recorder = recorder or InMemoryExecutionRecorder()
        self._executor = executor or StepExecutor(dispatcher, reasoner)
        self._orchestrator = WorkflowOrchestrator(self._executor, self._recorder)

    @property
    def recorder(self) -> ExecutionRecorder:
        return self._recorder

    async def invoke(
        self,
        workflow: Workflow,
        input: Optional[Dict[str, Any]] = None,
        tenant: Optional[TenantContext] = None,
        execution_id: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Invoke a workflow.

        Inactive workflows and definition errors are returned as failed
        results instead of being raised.

        Args:
            workflow: Workflow to execute
            input: Workflow input parameters
            tenant: Caller identity (defaults to an anonymous tenant)
            execution_id: Caller-chosen id, so the run can be cancelled or
                queried while it is in flight (generated when omitted)

        Returns:
            WorkflowResult
        """
        tenant = tenant or TenantContext(tenant_id="default")

        if workflow.status == WorkflowStatus.DISABLED:
            return self._rejected(workflow, "WORKFLOW_DISABLED", f"Workflow '{workflow.name}' is disabled")
        if workflow.status != WorkflowStatus.ACTIVE:
            return self._rejected(
                workflow,
                "WORKFLOW_NOT_ACTIVE",
                f"Workflow '{workflow.name}' is in {workflow.status.value} status and cannot be invoked",
            )

        try:
            return await self._orchestrator.run(workflow, input, tenant, execution_id=execution_id)
        except WorkflowDefinitionError as e:
            logger.warning(f"Workflow '{workflow.name}' rejected: [{e.code}] {e}")
            return self._rejected(workflow, e.code, str(e))

    async def cancel_execution(self, execution_id: str, tenant_id: Optional[str] = None) -> bool:
        """
        Mark a running execution as cancelled.

        Cancellation is not preemptive: the step in flight finishes, and the
        run stops before its next step.

        Returns:
            True if cancelled, False if not found, not owned, or not running
        """
        record = await self._recorder.get_execution(execution_id)
        if record is None or (tenant_id is not None and record.tenant_id != tenant_id):
            return False
        if record.status != ExecutionStatus.RUNNING:
            logger.info(f"Cannot cancel {execution_id} in status {record.status.value}")
            return False

        await self._recorder.update_execution(execution_id, ExecutionUpdate(
            status=ExecutionStatus.CANCELLED,
            completed_at=datetime.now(timezone.utc),
        ))
        logger.info(f"Execution {execution_id} cancelled")
        return True

    async def query_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Get the audit record of an execution, or None if not found."""
        return await self._recorder.get_execution(execution_id)

    @staticmethod
    def _rejected(workflow: Workflow, code: str, message: str) -> WorkflowResult:
        return WorkflowResult(
            success=False,
            status=ExecutionStatus.FAILED,
            error=WorkflowError(code=code, message=message),
            meta=ExecutionMeta(workflow=workflow.name, total_steps=len(workflow.steps)),
        )
