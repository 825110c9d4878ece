"""
Conduit Capability Dispatcher

Uniform invoke contract over the three capability kinds:

- action:    "namespace/name" addressed action, no inherent cost
- composite: composed multi-action tool, no inherent cost
- agentic:   LLM-driven tool taking a natural-language task, reports its cost

Each kind is served by its own invoker. Adding a kind means adding an invoker
interface and a dispatcher branch.
"""

from __future__ import annotations
from typing import Dict, Any, Optional
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import json
import logging

from ..schemas.execution import StepError
from ..schemas.workflow import CapabilityKind, CapabilityRef


logger = logging.getLogger(__name__)


# Failures caused by the definition itself; retrying cannot help.
CONFIGURATION_ERROR_CODES = frozenset({
    "CAPABILITY_NOT_CONFIGURED",
    "UNKNOWN_CAPABILITY_KIND",
    "INVALID_CAPABILITY_IDENTIFIER",
})


# =============================================================================
# Types
# =============================================================================

@dataclass
class TenantContext:
    """Caller identity and per-call options passed through to invokers."""
    tenant_id: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CapabilityResult:
    """Result of one capability invocation."""
    success: bool
    output: Any = None
    cost_usd: float = 0.0
    error: Optional[StepError] = None

    @property
    def retryable(self) -> bool:
        return not self.success and (
            self.error is None or self.error.code not in CONFIGURATION_ERROR_CODES
        )


def _failure(code: str, message: str) -> CapabilityResult:
    return CapabilityResult(success=False, error=StepError(code=code, message=message))


# =============================================================================
# Invoker Interfaces
# =============================================================================

class ActionInvoker(ABC):
    @abstractmethod
    async def invoke_action(
        self,
        tenant: TenantContext,
        namespace: str,
        name: str,
        params: Dict[str, Any],
    ) -> CapabilityResult:
        """Invoke a directly-addressable action."""


class CompositeToolInvoker(ABC):
    @abstractmethod
    async def invoke_composite(
        self,
        tenant: TenantContext,
        identifier: str,
        params: Dict[str, Any],
    ) -> CapabilityResult:
        """Invoke a composed multi-action tool."""


class AgenticToolInvoker(ABC):
    @abstractmethod
    async def invoke_agentic(
        self,
        tenant: TenantContext,
        identifier: str,
        task: str,
    ) -> CapabilityResult:
        """Invoke an LLM-driven tool with a natural-language task."""


# =============================================================================
# Dispatcher
# =============================================================================

class CapabilityDispatcher:
    """
    Routes a capability reference to the invoker for its kind.

    Misconfiguration is reported as a failed result, never raised.
    Exceptions raised by invokers propagate to the caller.
    """

    def __init__(
        self,
        actions: Optional[ActionInvoker] = None,
        composites: Optional[CompositeToolInvoker] = None,
        agentic: Optional[AgenticToolInvoker] = None,
    ):
        self._actions = actions
        self._composites = composites
        self._agentic = agentic

    async def invoke(
        self,
        capability: Optional[CapabilityRef],
        params: Dict[str, Any],
        tenant: TenantContext,
    ) -> CapabilityResult:
        if capability is None:
            return _failure(
                "CAPABILITY_NOT_CONFIGURED",
                "Step has no capability configured but is not a reasoning-only step",
            )

        kind = capability.kind
        logger.debug(f"Dispatching {kind.value} capability '{capability.identifier}' for {tenant.tenant_id}")

        if kind == CapabilityKind.ACTION:
            return await self._invoke_action(capability.identifier, params, tenant)
        elif kind == CapabilityKind.COMPOSITE:
            return await self._invoke_composite(capability.identifier, params, tenant)
        elif kind == CapabilityKind.AGENTIC:
            return await self._invoke_agentic(capability.identifier, params, tenant)

        return _failure("UNKNOWN_CAPABILITY_KIND", f"Unknown capability kind: {getattr(kind, 'value', kind)}")

    async def _invoke_action(
        self,
        identifier: str,
        params: Dict[str, Any],
        tenant: TenantContext,
    ) -> CapabilityResult:
        namespace, sep, name = identifier.partition("/")
        if not sep or not namespace or not name:
            return _failure(
                "INVALID_CAPABILITY_IDENTIFIER",
                f'Action identifier must be in "namespace/name" format, got: "{identifier}"',
            )
        if self._actions is None:
            return _failure("CAPABILITY_NOT_CONFIGURED", "No action invoker configured")

        result = await self._actions.invoke_action(tenant, namespace, name, params)
        # Actions carry no inherent cost.
        result.cost_usd = 0.0
        return self._normalize(result, "ACTION_FAILED", "Action invocation failed")

    async def _invoke_composite(
        self,
        identifier: str,
        params: Dict[str, Any],
        tenant: TenantContext,
    ) -> CapabilityResult:
        if self._composites is None:
            return _failure("CAPABILITY_NOT_CONFIGURED", "No composite tool invoker configured")

        result = await self._composites.invoke_composite(tenant, identifier, params)
        result.cost_usd = 0.0
        return self._normalize(result, "COMPOSITE_TOOL_FAILED", "Composite tool invocation failed")

    async def _invoke_agentic(
        self,
        identifier: str,
        params: Dict[str, Any],
        tenant: TenantContext,
    ) -> CapabilityResult:
        if self._agentic is None:
            return _failure("CAPABILITY_NOT_CONFIGURED", "No agentic tool invoker configured")

        task = derive_task(params)
        result = await self._agentic.invoke_agentic(tenant, identifier, task)
        return self._normalize(result, "AGENTIC_TOOL_FAILED", "Agentic tool invocation failed")

    @staticmethod
    def _normalize(result: CapabilityResult, code: str, message: str) -> CapabilityResult:
        if not result.success and result.error is None:
            result.error = StepError(code=code, message=message)
        return result


def derive_task(params: Dict[str, Any]) -> str:
    """The agentic task is the input's ``task`` field, or the whole input as JSON."""
    task = params.get("task")
    if task is not None:
        return task if isinstance(task, str) else json.dumps(task, default=str)
    return json.dumps(params, default=str)
