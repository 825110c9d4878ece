"""
Conduit Condition Evaluator

Decides whether a step should be skipped based on its condition.
"""

from __future__ import annotations
from typing import Any, Optional
from dataclasses import dataclass
import logging
import math

from ..schemas.workflow import SkipWhen, StepCondition
from ..state.execution_state import ExecutionState
from .expressions import UnresolvedStepError, resolve_expression, unwrap_expression


logger = logging.getLogger(__name__)


@dataclass
class ConditionResult:
    """Outcome of evaluating a step condition."""
    should_skip: bool
    reason: Optional[str] = None
    resolved_value: Any = None


def to_boolean(value: Any) -> bool:
    """
    Convert a resolved value to a boolean.

    None and NaN are false, numbers are true when nonzero, strings are true
    unless empty or "false", and collections are true when non-empty.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return False
        return value != 0
    if isinstance(value, str):
        return value != "" and value != "false"
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def evaluate_condition(
    condition: Optional[StepCondition],
    state: ExecutionState,
) -> ConditionResult:
    """
    Evaluate a step condition against state.

    A reference to a step with no recorded result is treated as falsy.
    Malformed expressions raise ExpressionSyntaxError.
    """
    if condition is None:
        return ConditionResult(should_skip=False)

    expression = unwrap_expression(condition.expression)

    try:
        value = resolve_expression(expression, state)
        is_truthy = to_boolean(value)
        unresolved = False
    except UnresolvedStepError as e:
        logger.debug(f"Condition '{expression}' treated as falsy: {e}")
        value = None
        is_truthy = False
        unresolved = True

    if condition.skip_when == SkipWhen.TRUTHY:
        should_skip = is_truthy
    else:
        should_skip = not is_truthy

    if not should_skip:
        return ConditionResult(should_skip=False, resolved_value=value)

    if unresolved:
        reason = (
            f"Condition '{expression}' could not be resolved "
            f"(referenced step has not executed), treated as falsy"
        )
    else:
        label = "truthy" if is_truthy else "falsy"
        reason = f"Condition '{expression}' evaluated to {label} (skip when {condition.skip_when.value})"

    return ConditionResult(should_skip=True, reason=reason, resolved_value=value)
