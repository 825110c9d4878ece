"""Conduit Persistence Module - Execution audit records."""

from .base import (
    ExecutionRecord,
    ExecutionRecorder,
    ExecutionUpdate,
    StepExecutionRecord,
    StepExecutionUpdate,
)
from .memory import InMemoryExecutionRecorder

__all__ = [
    "ExecutionRecord",
    "ExecutionRecorder",
    "ExecutionUpdate",
    "StepExecutionRecord",
    "StepExecutionUpdate",
    "InMemoryExecutionRecorder",
]
