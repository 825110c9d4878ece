"""
In-Memory Execution Recorder

Fast, non-persistent storage for testing and embedding.
"""

from typing import Dict, List, Optional

from .base import (
    ExecutionRecord,
    ExecutionRecorder,
    ExecutionUpdate,
    StepExecutionRecord,
    StepExecutionUpdate,
)


class InMemoryExecutionRecorder(ExecutionRecorder):
    """
    In-memory execution recorder (no persistence).

    WARNING: All data is lost when the process exits.
    """

    def __init__(self):
        self._executions: Dict[str, ExecutionRecord] = {}
        self._steps: Dict[str, StepExecutionRecord] = {}

    async def create_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        self._executions[record.execution_id] = record
        return record

    async def update_execution(
        self,
        execution_id: str,
        update: ExecutionUpdate,
    ) -> Optional[ExecutionRecord]:
        record = self._executions.get(execution_id)
        if record is None:
            return None
        for name, value in update.changes().items():
            setattr(record, name, value)
        return record

    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        return self._executions.get(execution_id)

    async def create_step_execution(self, record: StepExecutionRecord) -> StepExecutionRecord:
        self._steps[record.step_execution_id] = record
        return record

    async def update_step_execution(
        self,
        step_execution_id: str,
        update: StepExecutionUpdate,
    ) -> Optional[StepExecutionRecord]:
        record = self._steps.get(step_execution_id)
        if record is None:
            return None
        for name, value in update.changes().items():
            setattr(record, name, value)
        return record

    async def list_step_executions(self, execution_id: str) -> List[StepExecutionRecord]:
        records = [r for r in self._steps.values() if r.execution_id == execution_id]
        return sorted(records, key=lambda r: r.step_number)

    def clear(self) -> None:
        """Clear all records (for testing)."""
        self._executions.clear()
        self._steps.clear()
