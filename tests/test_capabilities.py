"""
Conduit Capability Dispatch Tests

Tests for routing capability references to their invokers.
"""

import json

import pytest

from conduit.core.capabilities import CapabilityDispatcher, CapabilityResult, derive_task
from conduit.schemas.execution import StepError
from conduit.schemas.workflow import CapabilityKind, CapabilityRef


def _ref(kind, identifier):
    return CapabilityRef(kind=kind, identifier=identifier)


class TestCapabilityDispatcher:
    """Test dispatch per capability kind."""

    @pytest.mark.asyncio
    async def test_action_identifier_split(self, dispatcher, invoker, tenant):
        """Action identifiers are split into namespace and name."""
        invoker.queue("web/search", CapabilityResult(success=True, output={"hits": 2}, cost_usd=9.0))

        result = await dispatcher.invoke(_ref(CapabilityKind.ACTION, "web/search"), {"q": "x"}, tenant)

        assert result.success is True
        assert result.output == {"hits": 2}
        assert result.cost_usd == 0.0
        assert invoker.calls_for("web/search") == [{"q": "x"}]

    @pytest.mark.asyncio
    async def test_action_name_may_contain_slash(self, dispatcher, invoker, tenant):
        await dispatcher.invoke(_ref(CapabilityKind.ACTION, "files/read/raw"), {}, tenant)
        assert invoker.calls[0][0] == "files/read/raw"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", ["search", "/search", "web/"])
    async def test_invalid_action_identifier(self, dispatcher, invoker, tenant, identifier):
        result = await dispatcher.invoke(_ref(CapabilityKind.ACTION, identifier), {}, tenant)

        assert result.success is False
        assert result.error.code == "INVALID_CAPABILITY_IDENTIFIER"
        assert result.retryable is False
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_composite_has_no_cost(self, dispatcher, invoker, tenant):
        invoker.queue("report", CapabilityResult(success=True, output="done", cost_usd=1.0))

        result = await dispatcher.invoke(_ref(CapabilityKind.COMPOSITE, "report"), {"a": 1}, tenant)

        assert result.output == "done"
        assert result.cost_usd == 0.0

    @pytest.mark.asyncio
    async def test_agentic_reports_cost(self, dispatcher, invoker, tenant):
        invoker.queue("researcher", CapabilityResult(success=True, output={"text": "hi"}, cost_usd=0.75))

        result = await dispatcher.invoke(
            _ref(CapabilityKind.AGENTIC, "researcher"),
            {"task": "Summarize the news"},
            tenant,
        )

        assert result.cost_usd == 0.75
        assert invoker.calls_for("researcher") == ["Summarize the news"]

    @pytest.mark.asyncio
    async def test_missing_capability(self, dispatcher, tenant):
        result = await dispatcher.invoke(None, {}, tenant)

        assert result.error.code == "CAPABILITY_NOT_CONFIGURED"
        assert result.retryable is False

    @pytest.mark.asyncio
    async def test_missing_invoker(self, tenant):
        dispatcher = CapabilityDispatcher()

        for kind, identifier in (
            (CapabilityKind.ACTION, "a/b"),
            (CapabilityKind.COMPOSITE, "c"),
            (CapabilityKind.AGENTIC, "d"),
        ):
            result = await dispatcher.invoke(_ref(kind, identifier), {}, tenant)
            assert result.error.code == "CAPABILITY_NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_failure_without_error_gets_default_code(self, dispatcher, invoker, tenant):
        invoker.queue("a/b", CapabilityResult(success=False))
        invoker.queue("c", CapabilityResult(success=False))
        invoker.queue("d", CapabilityResult(success=False))

        action = await dispatcher.invoke(_ref(CapabilityKind.ACTION, "a/b"), {}, tenant)
        composite = await dispatcher.invoke(_ref(CapabilityKind.COMPOSITE, "c"), {}, tenant)
        agentic = await dispatcher.invoke(_ref(CapabilityKind.AGENTIC, "d"), {}, tenant)

        assert action.error.code == "ACTION_FAILED"
        assert composite.error.code == "COMPOSITE_TOOL_FAILED"
        assert agentic.error.code == "AGENTIC_TOOL_FAILED"
        assert action.retryable is True

    @pytest.mark.asyncio
    async def test_invoker_error_kept(self, dispatcher, invoker, tenant):
        invoker.queue("a/b", CapabilityResult(
            success=False,
            error=StepError(code="RATE_LIMITED", message="slow down"),
        ))

        result = await dispatcher.invoke(_ref(CapabilityKind.ACTION, "a/b"), {}, tenant)
        assert result.error.code == "RATE_LIMITED"

    @pytest.mark.asyncio
    async def test_invoker_exception_propagates(self, dispatcher, invoker, tenant):
        invoker.queue("a/b", RuntimeError("socket closed"))

        with pytest.raises(RuntimeError):
            await dispatcher.invoke(_ref(CapabilityKind.ACTION, "a/b"), {}, tenant)


class TestDeriveTask:
    """Test agentic task derivation."""

    def test_task_field(self):
        assert derive_task({"task": "do it", "other": 1}) == "do it"

    def test_non_string_task(self):
        assert derive_task({"task": {"goal": "x"}}) == '{"goal": "x"}'

    def test_whole_input_as_json(self):
        assert json.loads(derive_task({"topic": "rust", "depth": 2})) == {"topic": "rust", "depth": 2}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
