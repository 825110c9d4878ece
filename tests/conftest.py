"""
Shared test fixtures: fake capability invokers, a fake LLM client, a
recording sleep and a controllable clock.
"""

import dataclasses
import inspect
from typing import Any, Dict, List, Tuple

import pytest

from conduit.config import reset_config
from conduit.core.capabilities import (
    ActionInvoker,
    AgenticToolInvoker,
    CapabilityDispatcher,
    CapabilityResult,
    CompositeToolInvoker,
    TenantContext,
)
from conduit.core.orchestrator import WorkflowOrchestrator
from conduit.core.step_executor import StepExecutor
from conduit.persistence.memory import InMemoryExecutionRecorder
from conduit.reasoning.llm_client import LLMCallResponse, LLMClient, LLMUsage
from conduit.reasoning.reasoner import InterStepReasoner


# =============================================================================
# Fakes
# =============================================================================

class FakeInvoker(ActionInvoker, CompositeToolInvoker, AgenticToolInvoker):
    """
    Scripted invoker for all capability kinds.

    Responses are queued per identifier ("namespace/name" for actions). Each
    item is a CapabilityResult, an Exception to raise, or a callable taking
    the payload. The last queued item repeats. Unscripted identifiers echo
    their payload.
    """

    def __init__(self):
        self.responses: Dict[str, List[Any]] = {}
        self.calls: List[Tuple[str, Any]] = []

    def queue(self, identifier: str, *items: Any) -> None:
        self.responses.setdefault(identifier, []).extend(items)

    def calls_for(self, identifier: str) -> List[Any]:
        return [payload for ident, payload in self.calls if ident == identifier]

    async def _next(self, identifier: str, payload: Any) -> CapabilityResult:
        self.calls.append((identifier, payload))
        queue = self.responses.get(identifier)
        if not queue:
            return CapabilityResult(success=True, output={"echo": payload})

        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item(payload)
            if inspect.isawaitable(item):
                item = await item
        return dataclasses.replace(item)

    async def invoke_action(self, tenant, namespace, name, params):
        return await self._next(f"{namespace}/{name}", params)

    async def invoke_composite(self, tenant, identifier, params):
        return await self._next(identifier, params)

    async def invoke_agentic(self, tenant, identifier, task):
        return await self._next(identifier, task)


class FakeLLMClient(LLMClient):
    """Returns queued contents (or raises queued exceptions) in order."""

    def __init__(self, *contents: Any, cost: float = 0.01, tokens: int = 100):
        self.contents = list(contents)
        self.cost = cost
        self.tokens = tokens
        self.requests = []

    async def call(self, request):
        self.requests.append(request)
        item = self.contents.pop(0) if len(self.contents) > 1 else self.contents[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, LLMCallResponse):
            return item
        return LLMCallResponse(
            content=item,
            model=request.model,
            provider=request.provider,
            cost=self.cost,
            usage=LLMUsage(total_tokens=self.tokens),
            duration_ms=5,
        )


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Every test sees configuration loaded from its own environment."""
    monkeypatch.delenv("CONDUIT_LLM_MODEL", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def tenant():
    return TenantContext(tenant_id="tenant_test")


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def llm():
    return FakeLLMClient('{"summary": "ok"}')


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher(invoker):
    return CapabilityDispatcher(actions=invoker, composites=invoker, agentic=invoker)


@pytest.fixture
def reasoner(llm):
    return InterStepReasoner(client=llm)


@pytest.fixture
def executor(dispatcher, reasoner, sleep):
    return StepExecutor(dispatcher, reasoner, sleep=sleep)


@pytest.fixture
def recorder():
    return InMemoryExecutionRecorder()


@pytest.fixture
def orchestrator(executor, recorder, clock):
    return WorkflowOrchestrator(executor, recorder, clock=clock)
