"""
Conduit HTTP Capability Gateway

Invokes all three capability kinds against a JSON HTTP gateway.

Endpoints:
    POST {base}/actions/{namespace}/{name}   body: {"params": ...}
    POST {base}/composite-tools/invoke       body: {"tool": ..., "params": ...}
    POST {base}/agentic-tools/invoke         body: {"tool": ..., "task": ...}

Responses are expected as {"success": bool, "data": ..., "error": {...},
"meta": {"cost_usd": ...}}. Transport failures become failed results.
"""

from __future__ import annotations
from typing import Dict, Any, Optional
import asyncio
import logging

import aiohttp

from ..config import get_config
from ..schemas.execution import StepError
from .capabilities import (
    ActionInvoker,
    AgenticToolInvoker,
    CapabilityResult,
    CompositeToolInvoker,
    TenantContext,
)


logger = logging.getLogger(__name__)


class HttpCapabilityGateway(ActionInvoker, CompositeToolInvoker, AgenticToolInvoker):
    """
    aiohttp-backed invoker for actions, composite tools and agentic tools.

    A session passed in is borrowed and left open; otherwise one is created
    lazily and closed by ``close()``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[aiohttp.ClientSession] = None,
    ):
        config = get_config().gateway
        self.base_url = (base_url or config.base_url).rstrip("/")
        self.token = token if token is not None else config.token
        self.timeout_seconds = timeout_seconds or config.timeout_seconds
        self._http = http_client
        self._owns_http = http_client is None

    async def _get_http(self) -> aiohttp.ClientSession:
        """Get or create HTTP client."""
        if self._http is None:
            self._http = aiohttp.ClientSession()
        return self._http

    async def close(self) -> None:
        """Close resources."""
        if self._owns_http and self._http:
            await self._http.close()
            self._http = None

    async def __aenter__(self) -> "HttpCapabilityGateway":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # =========================================================================
    # Invokers
    # =========================================================================

    async def invoke_action(
        self,
        tenant: TenantContext,
        namespace: str,
        name: str,
        params: Dict[str, Any],
    ) -> CapabilityResult:
        return await self._post(
            f"/actions/{namespace}/{name}",
            {"params": params},
            tenant,
            default_code="ACTION_FAILED",
        )

    async def invoke_composite(
        self,
        tenant: TenantContext,
        identifier: str,
        params: Dict[str, Any],
    ) -> CapabilityResult:
        return await self._post(
            "/composite-tools/invoke",
            {"tool": identifier, "params": params},
            tenant,
            default_code="COMPOSITE_TOOL_FAILED",
        )

    async def invoke_agentic(
        self,
        tenant: TenantContext,
        identifier: str,
        task: str,
    ) -> CapabilityResult:
        return await self._post(
            "/agentic-tools/invoke",
            {"tool": identifier, "task": task},
            tenant,
            default_code="AGENTIC_TOOL_FAILED",
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def _headers(self, tenant: TenantContext) -> Dict[str, str]:
        headers = {"X-Tenant-Id": tenant.tenant_id}
        token = tenant.options.get("token") or self.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _post(
        self,
        path: str,
        body: Dict[str, Any],
        tenant: TenantContext,
        default_code: str,
    ) -> CapabilityResult:
        url = f"{self.base_url}{path}"
        timeout = tenant.options.get("timeout_seconds", self.timeout_seconds)

        try:
            http = await self._get_http()
            async with http.post(
                url,
                json=body,
                headers=self._headers(tenant),
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = {"data": await response.text()}

                return self._to_result(response.status, payload, default_code)
        except asyncio.TimeoutError:
            logger.warning(f"Capability request timed out: POST {url}")
            return CapabilityResult(
                success=False,
                error=StepError(code="STEP_TIMEOUT", message=f"Request to {path} timed out"),
            )
        except aiohttp.ClientError as e:
            logger.warning(f"Capability request failed: POST {url}: {e}")
            return CapabilityResult(
                success=False,
                error=StepError(code=default_code, message=str(e)),
            )

    @staticmethod
    def _to_result(status: int, payload: Any, default_code: str) -> CapabilityResult:
        if not isinstance(payload, dict):
            payload = {"data": payload}

        meta = payload.get("meta") or {}
        cost = float(meta.get("cost_usd") or meta.get("totalCost") or 0.0)
        ok = status < 400 and payload.get("success", True) is not False

        if ok:
            return CapabilityResult(success=True, output=payload.get("data"), cost_usd=cost)

        raw_error = payload.get("error")
        if isinstance(raw_error, dict):
            error = StepError(
                code=raw_error.get("code") or default_code,
                message=raw_error.get("message") or f"HTTP {status}",
                details=raw_error.get("details"),
            )
        else:
            error = StepError(
                code=default_code,
                message=str(raw_error) if raw_error else f"HTTP {status}",
                details={"status": status},
            )
        return CapabilityResult(success=False, output=raw_error, cost_usd=cost, error=error)
