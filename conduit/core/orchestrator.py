"""
Conduit Workflow Orchestrator

Top-level control loop for one workflow run.

For each step in order:
- stop if the execution record was marked cancelled; once stopped, mark
  the step skipped
- check the budget; on violation, skip this and every remaining step
- checkpoint progress, execute the step, record its result into state
- apply the step's error policy on failure

Terminal status:
- cancelled between steps: cancelled
- budget violation: timeout (duration) or failed (cost)
- a failed step that halted the run: failed
- otherwise: completed, including runs where a step failed under the
  ``continue`` policy
"""

from __future__ import annotations
from typing import Dict, List, Any, Callable, Optional
from datetime import datetime, timezone
import logging
import time
import uuid

from ..persistence.base import (
    ExecutionRecord,
    ExecutionRecorder,
    ExecutionUpdate,
    StepExecutionRecord,
    StepExecutionUpdate,
)
from ..schemas.execution import (
    ExecutionMeta,
    ExecutionStatus,
    StepError,
    StepOutcome,
    StepResult,
    StepStatus,
    StepSummary,
    WorkflowError,
    WorkflowResult,
)
from ..schemas.workflow import ErrorPolicy, Workflow, WorkflowStep
from ..state.execution_state import (
    ExecutionState,
    create_initial_state,
    get_status_counts,
    record_step_result,
    serialize_state,
)
from .budget import BudgetContext, BudgetViolation, check_budget_limits, resolve_effective_limits
from .capabilities import TenantContext
from .output_projector import last_completed_output, resolve_output_mapping
from .step_executor import StepExecutor


logger = logging.getLogger(__name__)

HALTING_POLICIES = (ErrorPolicy.STOP, ErrorPolicy.STOP_REMAINING)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowDefinitionError(Exception):
    """The workflow cannot be executed at all."""

    def __init__(self, code: str, message: str, issues: Optional[List[Any]] = None):
        super().__init__(message)
        self.code = code
        self.issues = issues or []


class WorkflowOrchestrator:
    """
    Runs workflows start to finish, one step at a time.

    Step failures are captured into the result; only definition errors raise.
    """

    def __init__(
        self,
        executor: StepExecutor,
        recorder: ExecutionRecorder,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._executor = executor
        self._recorder = recorder
        self._clock = clock

    async def run(
        self,
        workflow: Workflow,
        input: Optional[Dict[str, Any]],
        tenant: TenantContext,
        execution_id: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Execute a workflow.

        Args:
            workflow: The workflow to execute
            input: Workflow input parameters
            tenant: Caller identity passed to capabilities
            execution_id: Optional explicit execution ID

        Returns:
            WorkflowResult with output, error and run metadata

        Raises:
            WorkflowDefinitionError: If the workflow has no steps
        """
        steps = workflow.steps
        if not steps:
            raise WorkflowDefinitionError(
                "EMPTY_WORKFLOW",
                f"Workflow '{workflow.name}' has no steps",
            )

        execution_id = execution_id or f"exec_{uuid.uuid4().hex[:12]}"
        started = self._clock()
        total_steps = len(steps)

        await self._recorder.create_execution(ExecutionRecord(
            execution_id=execution_id,
            workflow_id=workflow.id,
            tenant_id=tenant.tenant_id,
            status=ExecutionStatus.RUNNING,
            input=dict(input or {}),
            total_steps=total_steps,
            started_at=_now(),
        ))

        step_record_ids: Dict[int, str] = {}
        for step in steps:
            record = await self._recorder.create_step_execution(StepExecutionRecord(
                step_execution_id=f"{execution_id}_step_{step.step_number}",
                execution_id=execution_id,
                step_slug=step.slug,
                step_number=step.step_number,
            ))
            step_record_ids[step.step_number] = record.step_execution_id

        logger.info(f"Starting workflow '{workflow.name}' ({execution_id}) with {total_steps} steps")

        state = create_initial_state(input)
        limits = resolve_effective_limits(workflow.budget)
        budget = BudgetContext(started_at=started, total_steps=total_steps)

        summaries: List[StepSummary] = []
        failed_step: Optional[WorkflowStep] = None
        stopped = False
        cancelled = False
        violation: Optional[BudgetViolation] = None

        for step in steps:
            record_id = step_record_ids[step.step_number]

            if not stopped and await self._is_cancelled(execution_id):
                logger.info(f"Execution {execution_id} cancelled before step {step.step_number}")
                cancelled = stopped = True

            if stopped:
                state = await self._skip_step(state, step, record_id, summaries, violation)
                continue

            budget.current_step = step.step_number
            check = check_budget_limits(limits, budget, self._clock)
            if not check.allowed:
                violation = check.violation
                stopped = True
                logger.warning(f"Budget violation in {execution_id}: {violation.message}")
                state = await self._skip_step(state, step, record_id, summaries, violation)
                continue

            # Checkpoint before the step starts
            await self._recorder.update_step_execution(record_id, StepExecutionUpdate(
                status=StepStatus.RUNNING,
                started_at=_now(),
            ))
            await self._recorder.update_execution(execution_id, ExecutionUpdate(
                current_step=step.step_number,
                state=serialize_state(state),
                total_cost_usd=budget.total_cost_usd,
                total_tokens=budget.total_tokens,
            ))

            logger.info(f"Running step {step.step_number}/{total_steps} '{step.slug}'")
            outcome = await self._executor.execute(step, workflow, state, tenant, total_steps)

            budget.add(outcome.cost_usd, outcome.tokens)
            summaries.append(StepSummary(
                name=step.name,
                slug=step.slug,
                status=outcome.status,
                duration_ms=outcome.duration_ms,
                cost_usd=outcome.cost_usd,
            ))
            await self._recorder.update_step_execution(record_id, self._step_update(outcome))

            state = record_step_result(state, step.slug, outcome.to_step_result())

            if outcome.status == StepStatus.FAILED:
                failed_step = step
                message = outcome.error.message if outcome.error else "unknown error"
                logger.warning(
                    f"Step '{step.slug}' failed ({step.on_error.value}): {message}"
                )
                if step.on_error in HALTING_POLICIES:
                    stopped = True

        duration_ms = int((self._clock() - started) * 1000)

        if cancelled:
            status = ExecutionStatus.CANCELLED
        elif violation is not None:
            status = ExecutionStatus.TIMEOUT if violation.is_duration else ExecutionStatus.FAILED
        elif failed_step is not None and stopped:
            status = ExecutionStatus.FAILED
        else:
            status = ExecutionStatus.COMPLETED

        if workflow.output_mapping is not None:
            output = resolve_output_mapping(workflow.output_mapping, state)
        else:
            output = last_completed_output(state)

        error = self._workflow_error(status, violation, failed_step, output)

        await self._recorder.update_execution(execution_id, ExecutionUpdate(
            status=status,
            state=serialize_state(state),
            output=output,
            current_step=total_steps,
            total_cost_usd=budget.total_cost_usd,
            total_tokens=budget.total_tokens,
            error=error.to_dict() if error else None,
            completed_at=_now(),
        ))

        logger.info(
            f"Workflow '{workflow.name}' ({execution_id}) finished: {status.value} "
            f"in {duration_ms}ms, ${budget.total_cost_usd:.4f}"
        )

        return WorkflowResult(
            success=status == ExecutionStatus.COMPLETED,
            status=status,
            data=output,
            error=error,
            meta=ExecutionMeta(
                workflow=workflow.name,
                execution_id=execution_id,
                total_steps=total_steps,
                completed_steps=get_status_counts(state)[StepStatus.COMPLETED.value],
                total_cost_usd=budget.total_cost_usd,
                total_tokens=budget.total_tokens,
                duration_ms=duration_ms,
                steps=summaries,
            ),
        )

    async def _is_cancelled(self, execution_id: str) -> bool:
        """Cancellation is requested externally through the execution record."""
        record = await self._recorder.get_execution(execution_id)
        return record is not None and record.status == ExecutionStatus.CANCELLED

    async def _skip_step(
        self,
        state: ExecutionState,
        step: WorkflowStep,
        record_id: str,
        summaries: List[StepSummary],
        violation: Optional[BudgetViolation],
    ) -> ExecutionState:
        """Mark a step skipped because the run has stopped."""
        error = None
        if violation is not None:
            error = StepError(code=violation.code, message=violation.message)

        summaries.append(StepSummary(name=step.name, slug=step.slug, status=StepStatus.SKIPPED))
        await self._recorder.update_step_execution(record_id, StepExecutionUpdate(
            status=StepStatus.SKIPPED,
            error=error.to_dict() if error else None,
            completed_at=_now(),
        ))
        return record_step_result(
            state,
            step.slug,
            StepResult(output=None, status=StepStatus.SKIPPED, error=error),
        )

    @staticmethod
    def _step_update(outcome: StepOutcome) -> StepExecutionUpdate:
        return StepExecutionUpdate(
            status=outcome.status,
            resolved_input=outcome.resolved_input,
            tool_output=outcome.output,
            reasoning_output=outcome.reasoning,
            error=outcome.error.to_dict() if outcome.error else None,
            retry_count=outcome.retry_count,
            cost_usd=outcome.cost_usd,
            tokens=outcome.tokens,
            duration_ms=outcome.duration_ms,
            completed_at=_now(),
        )

    @staticmethod
    def _workflow_error(
        status: ExecutionStatus,
        violation: Optional[BudgetViolation],
        failed_step: Optional[WorkflowStep],
        output: Any,
    ) -> Optional[WorkflowError]:
        if status == ExecutionStatus.COMPLETED:
            return None

        details: Dict[str, Any] = {
            "failed_step": failed_step.slug if failed_step else None,
            "step_number": failed_step.step_number if failed_step else None,
            "partial_results": output,
        }

        if status == ExecutionStatus.CANCELLED:
            return WorkflowError(code="EXECUTION_CANCELLED", message="Execution was cancelled", details=details)

        if violation is not None:
            return WorkflowError(code=violation.code, message=violation.message, details=details)

        return WorkflowError(
            code="STEP_FAILED",
            message=f'Workflow failed at step {failed_step.step_number} ("{failed_step.name}")',
            details=details,
        )
