"""
Conduit Inter-Step Reasoner

Runs a reasoning call after a step's capability (or in place of one) and turns
the model's response into a JSON object that later steps can reference via
``{{steps.<slug>.reasoning}}``.

Cost and token usage are reported even when the response cannot be parsed,
so the budget still accounts for them.
"""

from __future__ import annotations
from typing import Dict, Any, Optional
from dataclasses import dataclass
import json
import logging

from ..schemas.workflow import ReasoningConfig
from ..state.execution_state import ExecutionState
from ..config import get_config
from .llm_client import LLMCallRequest, LLMClient, create_llm_client
from .prompt_builder import build_reasoning_prompt


logger = logging.getLogger(__name__)

PREVIEW_CHARS = 200


class ReasoningError(Exception):
    """Classified reasoning failure."""

    def __init__(
        self,
        code: str,
        message: str,
        step_slug: str,
        cost_usd: float = 0.0,
        tokens: int = 0,
    ):
        super().__init__(message)
        self.code = code
        self.step_slug = step_slug
        self.cost_usd = cost_usd
        self.tokens = tokens


@dataclass
class ReasoningOutcome:
    output: Dict[str, Any]
    cost_usd: float
    tokens: int
    duration_ms: int
    model: str
    provider: str


def default_reasoning_config() -> Optional[ReasoningConfig]:
    """Environment-level reasoning model, if CONDUIT_LLM_MODEL is set."""
    llm = get_config().llm
    if not llm.default_model:
        return None
    return ReasoningConfig(provider=llm.default_provider, model=llm.default_model)


def resolve_reasoning_config(
    step_config: Optional[ReasoningConfig],
    workflow_config: Optional[ReasoningConfig],
    fallback: Optional[ReasoningConfig] = None,
) -> Optional[ReasoningConfig]:
    """Step-level configuration overrides the workflow default, which overrides the environment."""
    return step_config or workflow_config or fallback


def parse_reasoning_output(content: Any, step_slug: str) -> Dict[str, Any]:
    """
    Normalize model content into a dict.

    Dicts pass through. Strings are parsed as JSON; non-object JSON is wrapped
    as ``{"result": value}``.

    Raises:
        ReasoningError: REASONING_INVALID_JSON or REASONING_UNEXPECTED_CONTENT
    """
    if isinstance(content, dict):
        return content
    if isinstance(content, list):
        return {"result": content}

    if isinstance(content, str):
        try:
            parsed = json.loads(content)
        except ValueError:
            raise ReasoningError(
                "REASONING_INVALID_JSON",
                f'Reasoning for step "{step_slug}" returned invalid JSON: '
                f"{content[:PREVIEW_CHARS]}",
                step_slug,
            )
        if isinstance(parsed, dict):
            return parsed
        return {"result": parsed}

    raise ReasoningError(
        "REASONING_UNEXPECTED_CONTENT",
        f'Reasoning for step "{step_slug}" returned unexpected content type '
        f"{type(content).__name__}",
        step_slug,
    )


class InterStepReasoner:
    """Builds prompts, calls the language model, and parses its JSON output."""

    def __init__(self, client: Optional[LLMClient] = None):
        self._client = client

    @property
    def client(self) -> LLMClient:
        if self._client is None:
            self._client = create_llm_client()
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def reason(
        self,
        reasoning_prompt: str,
        step_output: Any,
        state: ExecutionState,
        step_name: str,
        step_slug: str,
        step_number: int,
        total_steps: int,
        step_config: Optional[ReasoningConfig] = None,
        workflow_config: Optional[ReasoningConfig] = None,
    ) -> ReasoningOutcome:
        config = resolve_reasoning_config(step_config, workflow_config, default_reasoning_config())
        if config is None:
            raise ReasoningError(
                "REASONING_CONFIG_MISSING",
                "No reasoning configuration available. "
                "Configure reasoning at the workflow or step level, or set CONDUIT_LLM_MODEL.",
                step_slug,
            )

        prompt = build_reasoning_prompt(
            reasoning_prompt=reasoning_prompt,
            step_output=step_output,
            state=state,
            step_name=step_name,
            step_number=step_number,
            total_steps=total_steps,
            output_schema=config.output_schema,
        )

        request = LLMCallRequest(
            prompt=prompt.user_prompt,
            system_prompt=prompt.system_prompt,
            model=config.model,
            provider=config.provider,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            response_format="json",
            json_schema=config.output_schema,
        )

        try:
            response = await self.client.call(request)
        except Exception as e:
            raise ReasoningError(
                "REASONING_LLM_CALL_FAILED",
                f'Reasoning call failed for step "{step_slug}": {e}',
                step_slug,
            ) from e

        tokens = response.usage.total_tokens
        try:
            output = parse_reasoning_output(response.content, step_slug)
        except ReasoningError as e:
            e.cost_usd = response.cost
            e.tokens = tokens
            raise

        logger.debug(
            f"Reasoning for '{step_slug}' used {tokens} tokens (${response.cost:.4f}) "
            f"in {response.duration_ms}ms"
        )

        return ReasoningOutcome(
            output=output,
            cost_usd=response.cost,
            tokens=tokens,
            duration_ms=response.duration_ms,
            model=response.model,
            provider=response.provider,
        )
