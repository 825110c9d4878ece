"""
Conduit Step Executor

Runs one workflow step:

1. Evaluate the skip condition
2. Resolve the input mapping against current state
3. Dispatch the capability with bounded retry and exponential backoff
   (skipped for reasoning-only steps)
4. Run inter-step reasoning when enabled
5. Assemble the outcome (cost = capability + reasoning, tokens = reasoning)

Step-level failures are always returned as a failed StepOutcome, never raised.
"""

from __future__ import annotations
from typing import Dict, Any, Awaitable, Callable, Optional
from dataclasses import dataclass
import asyncio
import logging
import time

from async_timeout import timeout as async_timeout

from ..config import get_config
from ..reasoning.reasoner import InterStepReasoner, ReasoningError
from ..schemas.execution import StepError, StepOutcome, StepStatus
from ..schemas.workflow import Workflow, WorkflowStep
from ..state.execution_state import ExecutionState
from .capabilities import CapabilityDispatcher, CapabilityResult, TenantContext
from .conditions import evaluate_condition
from .expressions import TemplateResolutionError, resolve_templates


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class DispatchOutcome:
    """Result of the retry loop around one capability."""
    result: CapabilityResult
    retry_count: int
    attempts: int
    cost_usd: float


def backoff_delay_ms(backoff_ms: int, attempt: int) -> int:
    """Delay before attempt ``attempt`` (1-based retries); attempt 0 runs immediately."""
    if attempt <= 0:
        return 0
    return backoff_ms * 2 ** (attempt - 1)


class StepExecutor:
    """
    Executes single steps against a capability dispatcher and reasoner.

    ``sleep`` is injectable so retry timing can be observed without waiting.
    """

    def __init__(
        self,
        dispatcher: CapabilityDispatcher,
        reasoner: Optional[InterStepReasoner] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._dispatcher = dispatcher
        self._reasoner = reasoner or InterStepReasoner()
        self._sleep = sleep
        self.default_step_timeout = get_config().steps.timeout_seconds

    async def execute(
        self,
        step: WorkflowStep,
        workflow: Workflow,
        state: ExecutionState,
        tenant: TenantContext,
        total_steps: Optional[int] = None,
    ) -> StepOutcome:
        started = time.monotonic()
        total_steps = total_steps or len(workflow.steps)

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        # 1. Skip condition
        try:
            condition = evaluate_condition(step.condition, state)
        except TemplateResolutionError as e:
            return StepOutcome(
                status=StepStatus.FAILED,
                error=StepError(
                    code="CONDITION_EVALUATION_ERROR",
                    message=str(e),
                    details={"expression": e.expression},
                ),
                duration_ms=elapsed_ms(),
            )

        if condition.should_skip:
            logger.info(f"Skipping step '{step.slug}': {condition.reason}")
            return StepOutcome(
                status=StepStatus.SKIPPED,
                skip_reason=condition.reason,
                duration_ms=elapsed_ms(),
            )

        # 2. Input mapping
        try:
            resolved = resolve_templates(dict(step.input_mapping), state)
        except TemplateResolutionError as e:
            return StepOutcome(
                status=StepStatus.FAILED,
                error=StepError(
                    code=TemplateResolutionError.code,
                    message=str(e),
                    details={"expression": e.expression},
                ),
                duration_ms=elapsed_ms(),
            )
        logger.debug(f"Step '{step.slug}' resolved input: {resolved}")

        # 3. Capability dispatch
        tool_output: Any = None
        tool_cost = 0.0
        retry_count = 0
        attempts = 0

        if not step.is_reasoning_only:
            dispatched = await self._dispatch_with_retry(step, resolved, tenant)
            tool_output = dispatched.result.output
            tool_cost = dispatched.cost_usd
            retry_count = dispatched.retry_count
            attempts = dispatched.attempts

            if not dispatched.result.success:
                return StepOutcome(
                    status=StepStatus.FAILED,
                    output=tool_output,
                    error=dispatched.result.error,
                    resolved_input=resolved,
                    retry_count=retry_count,
                    attempts=attempts,
                    cost_usd=tool_cost,
                    duration_ms=elapsed_ms(),
                )

        # 4. Reasoning
        reasoning_output: Optional[Dict[str, Any]] = None
        reasoning_cost = 0.0
        reasoning_tokens = 0

        if step.wants_reasoning:
            try:
                reasoning = await self._reasoner.reason(
                    reasoning_prompt=step.reasoning_prompt,
                    step_output=tool_output,
                    state=state,
                    step_name=step.name,
                    step_slug=step.slug,
                    step_number=step.step_number,
                    total_steps=total_steps,
                    step_config=step.reasoning_config,
                    workflow_config=workflow.reasoning_config,
                )
            except ReasoningError as e:
                logger.warning(f"Reasoning failed for step '{step.slug}': [{e.code}] {e}")
                return StepOutcome(
                    status=StepStatus.FAILED,
                    output=tool_output,
                    error=StepError(code=e.code, message=str(e)),
                    resolved_input=resolved,
                    retry_count=retry_count,
                    attempts=attempts,
                    cost_usd=tool_cost + e.cost_usd,
                    tokens=e.tokens,
                    duration_ms=elapsed_ms(),
                )

            reasoning_output = reasoning.output
            reasoning_cost = reasoning.cost_usd
            reasoning_tokens = reasoning.tokens

        # 5. Success
        return StepOutcome(
            status=StepStatus.COMPLETED,
            output=tool_output,
            reasoning=reasoning_output,
            resolved_input=resolved,
            retry_count=retry_count,
            attempts=attempts,
            cost_usd=tool_cost + reasoning_cost,
            tokens=reasoning_tokens,
            duration_ms=elapsed_ms(),
        )

    async def _dispatch_with_retry(
        self,
        step: WorkflowStep,
        params: Dict[str, Any],
        tenant: TenantContext,
    ) -> DispatchOutcome:
        """
        Attempt 0 runs immediately; attempt k waits backoff * 2^(k-1) ms.

        Configuration failures are not retried. Cost accrued by failed
        attempts is kept.
        """
        max_attempts = step.retry.max_retries + 1
        timeout = step.timeout_seconds or self.default_step_timeout
        cost = 0.0
        result = CapabilityResult(success=False)
        attempt = 0

        for attempt in range(max_attempts):
            if attempt > 0:
                delay_ms = backoff_delay_ms(step.retry.backoff_ms, attempt)
                logger.warning(
                    f"Retrying step '{step.slug}' (attempt {attempt + 1}/{max_attempts}) "
                    f"in {delay_ms}ms after: {result.error.message if result.error else 'failure'}"
                )
                await self._sleep(delay_ms / 1000.0)

            try:
                async with async_timeout(timeout):
                    result = await self._dispatcher.invoke(step.capability, params, tenant)
            except asyncio.TimeoutError:
                result = CapabilityResult(
                    success=False,
                    error=StepError(
                        code="STEP_TIMEOUT",
                        message=f"Step '{step.slug}' timed out after {timeout}s",
                    ),
                )
            except Exception as e:
                logger.warning(f"Capability for step '{step.slug}' raised: {e}", exc_info=True)
                result = CapabilityResult(
                    success=False,
                    error=StepError(code="CAPABILITY_INVOCATION_ERROR", message=str(e)),
                )

            cost += result.cost_usd

            if result.success:
                return DispatchOutcome(result, attempt, attempt + 1, cost)
            if not result.retryable:
                break

        error = result.error or StepError(code="CAPABILITY_INVOCATION_ERROR", message="Capability failed")
        details = dict(error.details or {})
        details.update({"attempts": attempt + 1, "max_attempts": max_attempts})
        result.error = StepError(code=error.code, message=error.message, details=details)

        return DispatchOutcome(result, attempt, attempt + 1, cost)
