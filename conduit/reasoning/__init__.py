"""Conduit Reasoning Module - Inter-step language-model reasoning."""

from .llm_client import (
    LLMCallRequest,
    LLMCallResponse,
    LLMUsage,
    LLMClient,
    LLMError,
    HttpLLMClient,
    create_llm_client,
)
from .reasoner import (
    InterStepReasoner,
    ReasoningError,
    ReasoningOutcome,
    parse_reasoning_output,
    resolve_reasoning_config,
)

__all__ = [
    "LLMCallRequest",
    "LLMCallResponse",
    "LLMUsage",
    "LLMClient",
    "LLMError",
    "HttpLLMClient",
    "create_llm_client",
    "InterStepReasoner",
    "ReasoningError",
    "ReasoningOutcome",
    "parse_reasoning_output",
    "resolve_reasoning_config",
]
