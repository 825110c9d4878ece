"""Conduit State Module - Immutable execution state."""

from .execution_state import (
    ExecutionState,
    StateError,
    create_initial_state,
    record_step_result,
    has_step_result,
    get_step_result,
    get_completed_step_slugs,
    get_status_counts,
    create_state_summary,
    serialize_state,
    deserialize_state,
)

__all__ = [
    "ExecutionState",
    "StateError",
    "create_initial_state",
    "record_step_result",
    "has_step_result",
    "get_step_result",
    "get_completed_step_slugs",
    "get_status_counts",
    "create_state_summary",
    "serialize_state",
    "deserialize_state",
]
