"""
Conduit LLM Client

Language-model client contract used by the reasoning engine, plus an
aiohttp implementation for OpenAI-compatible chat completion endpoints
(OpenAI, LiteLLM proxy and similar gateways).
"""

from __future__ import annotations
from typing import Dict, List, Any, Optional
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import asyncio
import logging
import math
import time

import aiohttp

from ..config import LLMConfig, get_config


logger = logging.getLogger(__name__)


# =============================================================================
# Contract
# =============================================================================

@dataclass
class LLMCallRequest:
    prompt: str
    system_prompt: str
    model: str
    provider: str
    temperature: float = 0.2
    max_tokens: int = 2000
    response_format: str = "json"
    json_schema: Optional[Dict[str, Any]] = None


@dataclass
class LLMUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMCallResponse:
    """Raw model response. ``content`` is text or an already-parsed object."""
    content: Any
    model: str
    provider: str
    cost: float = 0.0
    usage: LLMUsage = field(default_factory=LLMUsage)
    duration_ms: int = 0


class LLMError(Exception):
    """Classified language-model failure."""

    def __init__(self, code: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class LLMClient(ABC):
    """Language-model client contract."""

    @abstractmethod
    async def call(self, request: LLMCallRequest) -> LLMCallResponse:
        """
        Perform one completion.

        Raises:
            LLMError: On any transport, HTTP or response-shape failure
        """
        pass

    async def close(self) -> None:
        pass


# =============================================================================
# OpenAI-compatible HTTP Client
# =============================================================================

class HttpLLMClient(LLMClient):
    """
    Async client for ``POST {base_url}/chat/completions``.

    Cost is taken from ``usage.cost`` when the gateway reports it, otherwise
    from the ``x-litellm-response-cost`` header.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 120.0,
        http_client: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._http = http_client
        self._owns_http = http_client is None

    async def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        return self._http

    async def close(self) -> None:
        if self._owns_http and self._http:
            await self._http.close()
            self._http = None

    def _build_body(self, request: LLMCallRequest) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.prompt},
        ]
        body: Dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.response_format == "json":
            if request.json_schema:
                body["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {"name": "step_output", "schema": request.json_schema},
                }
            else:
                body["response_format"] = {"type": "json_object"}
        return body

    async def call(self, request: LLMCallRequest) -> LLMCallResponse:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        started = time.monotonic()
        try:
            http = await self._get_http()
            async with http.post(
                f"{self.base_url}/chat/completions",
                json=self._build_body(request),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise LLMError(
                        "LLM_HTTP_ERROR",
                        f"LLM call failed: {response.status} - {text[:500]}",
                        status=response.status,
                    )
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise LLMError("LLM_INVALID_RESPONSE", f"LLM returned non-JSON body: {e}")
                header_cost = response.headers.get("x-litellm-response-cost")
        except asyncio.TimeoutError:
            raise LLMError("LLM_TIMEOUT", f"LLM call timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise LLMError("LLM_CONNECTION_ERROR", f"LLM call failed: {e}")

        duration_ms = int((time.monotonic() - started) * 1000)
        return self._parse(payload, request, header_cost, duration_ms)

    @staticmethod
    def _parse(
        payload: Any,
        request: LLMCallRequest,
        header_cost: Optional[str],
        duration_ms: int,
    ) -> LLMCallResponse:
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise LLMError("LLM_INVALID_RESPONSE", "LLM response has no message content")

        if content is None:
            raise LLMError("LLM_EMPTY_RESPONSE", "LLM returned empty content")

        raw_usage = payload.get("usage") or {}
        if not isinstance(raw_usage, dict):
            logger.warning(f"Ignoring malformed usage block: {raw_usage!r}")
            raw_usage = {}
        usage = LLMUsage(
            prompt_tokens=int(_number(raw_usage.get("prompt_tokens"), "prompt_tokens")),
            completion_tokens=int(_number(raw_usage.get("completion_tokens"), "completion_tokens")),
            total_tokens=int(_number(raw_usage.get("total_tokens"), "total_tokens")),
        )

        cost = raw_usage.get("cost")
        if cost is None:
            cost = header_cost

        return LLMCallResponse(
            content=content,
            model=payload.get("model") or request.model,
            provider=request.provider,
            cost=_number(cost, "cost"),
            usage=usage,
            duration_ms=duration_ms,
        )


def _number(value: Any, name: str) -> float:
    """Numeric usage field, or 0 when absent or unparsable."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if not math.isfinite(number):
        logger.warning(f"Ignoring unparsable {name} in LLM response: {value!r}")
        return 0.0
    return number


def create_llm_client(
    config: Optional[LLMConfig] = None,
    http_client: Optional[aiohttp.ClientSession] = None,
) -> LLMClient:
    """Create the default LLM client from configuration."""
    config = config or get_config().llm
    return HttpLLMClient(
        base_url=config.base_url,
        api_key=config.api_key,
        timeout_seconds=config.timeout_seconds,
        http_client=http_client,
    )
