"""
Conduit Output Projector

Builds the final workflow output from terminal state.
"""

from __future__ import annotations
from typing import Dict, Any, Optional
import copy
import logging

from ..schemas.execution import StepStatus
from ..schemas.workflow import OutputMapping
from ..state.execution_state import ExecutionState, get_status_counts
from .expressions import TemplateResolutionError, resolve_template_string, unwrap_expression


logger = logging.getLogger(__name__)


def resolve_output_mapping(mapping: OutputMapping, state: ExecutionState) -> Dict[str, Any]:
    """
    Resolve each output field independently.

    A field whose expression cannot be resolved is set to None; the other
    fields are still populated.
    """
    output: Dict[str, Any] = {}

    for name, field_def in mapping.fields.items():
        try:
            output[name] = resolve_template_string(
                "{{" + unwrap_expression(field_def.source) + "}}", state
            )
        except TemplateResolutionError as e:
            logger.debug(f"Output field '{name}' unresolved: {e}")
            output[name] = None

    if mapping.include_meta:
        counts = get_status_counts(state)
        output["_meta"] = {
            "steps_completed": counts[StepStatus.COMPLETED.value],
            "steps_failed": counts[StepStatus.FAILED.value],
            "steps_skipped": counts[StepStatus.SKIPPED.value],
            "step_results": {
                slug: {
                    "status": result.status.value,
                    "error": result.error.message if result.error else None,
                }
                for slug, result in state.steps.items()
            },
        }

    return output


def last_completed_output(state: ExecutionState) -> Optional[Any]:
    """Reasoning (or else output) of the last completed step."""
    for result in reversed(list(state.steps.values())):
        if result.status == StepStatus.COMPLETED:
            value = result.reasoning if result.reasoning is not None else result.output
            return copy.deepcopy(value)
    return None
