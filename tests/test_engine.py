"""
Conduit Engine Tests

Tests for the public engine API: invoke, cancel and query.
"""

from datetime import datetime, timezone

import pytest

from conduit import WorkflowEngine
from conduit.core.capabilities import CapabilityResult
from conduit.persistence.base import ExecutionRecord
from conduit.persistence.memory import InMemoryExecutionRecorder
from conduit.schemas.execution import ExecutionStatus
from conduit.schemas.workflow import CapabilityKind, CapabilityRef, Workflow, WorkflowStatus, WorkflowStep


def _workflow(status=WorkflowStatus.ACTIVE, steps=None):
    if steps is None:
        steps = [WorkflowStep(
            step_number=1,
            name="Lookup",
            slug="lookup",
            capability=CapabilityRef(kind=CapabilityKind.COMPOSITE, identifier="crm-lookup"),
            input_mapping={"email": "{{input.email}}"},
        )]
    return Workflow(name="engine-test", status=status, steps=steps)


@pytest.fixture
def engine(dispatcher, reasoner, recorder):
    return WorkflowEngine(dispatcher, reasoner, recorder=recorder)


class TestInvoke:
    """Test workflow invocation."""

    @pytest.mark.asyncio
    async def test_invoke_active_workflow(self, engine, invoker, tenant):
        invoker.queue("crm-lookup", CapabilityResult(success=True, output={"name": "Ada"}))

        result = await engine.invoke(_workflow(), {"email": "ada@example.com"}, tenant)

        assert result.success is True
        assert result.data == {"name": "Ada"}
        assert invoker.calls_for("crm-lookup") == [{"email": "ada@example.com"}]

        record = await engine.query_execution(result.meta.execution_id)
        assert record.status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_default_tenant(self, engine):
        result = await engine.invoke(_workflow())

        record = await engine.query_execution(result.meta.execution_id)
        assert record.tenant_id == "default"

    @pytest.mark.asyncio
    async def test_disabled_workflow_rejected(self, engine, invoker):
        result = await engine.invoke(_workflow(status=WorkflowStatus.DISABLED))

        assert result.success is False
        assert result.status == ExecutionStatus.FAILED
        assert result.error.code == "WORKFLOW_DISABLED"
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_draft_workflow_rejected(self, engine):
        result = await engine.invoke(_workflow(status=WorkflowStatus.DRAFT))
        assert result.error.code == "WORKFLOW_NOT_ACTIVE"

    @pytest.mark.asyncio
    async def test_empty_workflow_returned_as_failure(self, engine):
        result = await engine.invoke(_workflow(steps=[]))

        assert result.success is False
        assert result.error.code == "EMPTY_WORKFLOW"
        assert result.meta.execution_id is None

    def test_recorder_default(self, dispatcher):
        engine = WorkflowEngine(dispatcher)
        assert isinstance(engine.recorder, InMemoryExecutionRecorder)


class TestCancelAndQuery:
    """Test cancellation and lookup."""

    @pytest.fixture
    def running(self):
        return ExecutionRecord(
            execution_id="exec_running",
            workflow_id="wf_1",
            tenant_id="tenant_test",
            status=ExecutionStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )

    @pytest.mark.asyncio
    async def test_cancel_running(self, engine, recorder, running):
        await recorder.create_execution(running)

        assert await engine.cancel_execution("exec_running", tenant_id="tenant_test") is True

        record = await engine.query_execution("exec_running")
        assert record.status == ExecutionStatus.CANCELLED
        assert record.completed_at is not None

    @pytest.mark.asyncio
    async def test_cancel_in_flight_by_chosen_id(self, engine, invoker, tenant):
        """A caller-chosen execution id can be cancelled while the run is in flight."""
        async def cancel_during(params):
            assert await engine.cancel_execution("exec_chosen", tenant_id="tenant_test") is True
            return CapabilityResult(success=True, output={"name": "Ada"})

        invoker.queue("crm-lookup", cancel_during)
        steps = [
            WorkflowStep(
                step_number=1,
                name="Lookup",
                slug="lookup",
                capability=CapabilityRef(kind=CapabilityKind.COMPOSITE, identifier="crm-lookup"),
            ),
            WorkflowStep(
                step_number=2,
                name="Notify",
                slug="notify",
                capability=CapabilityRef(kind=CapabilityKind.COMPOSITE, identifier="notify"),
            ),
        ]

        result = await engine.invoke(_workflow(steps=steps), {}, tenant, execution_id="exec_chosen")

        assert result.meta.execution_id == "exec_chosen"
        assert result.status == ExecutionStatus.CANCELLED
        assert invoker.calls_for("notify") == []

    @pytest.mark.asyncio
    async def test_cancel_other_tenant_refused(self, engine, recorder, running):
        await recorder.create_execution(running)

        assert await engine.cancel_execution("exec_running", tenant_id="someone_else") is False
        assert (await engine.query_execution("exec_running")).status == ExecutionStatus.RUNNING

    @pytest.mark.asyncio
    async def test_cancel_finished_refused(self, engine):
        result = await engine.invoke(_workflow())
        assert await engine.cancel_execution(result.meta.execution_id) is False

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, engine):
        assert await engine.cancel_execution("exec_missing") is False

    @pytest.mark.asyncio
    async def test_query_unknown(self, engine):
        assert await engine.query_execution("exec_missing") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
