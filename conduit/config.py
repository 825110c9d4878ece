"""
Conduit Configuration Module

Centralized configuration from environment variables.
Budget defaults, step timeouts and collaborator endpoints live here so
workflows only override what they need.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class BudgetDefaults:
    """Default budget limits applied when a workflow does not set its own."""
    max_cost_usd: float = 5.0
    max_duration_seconds: float = 1800.0


@dataclass
class StepDefaults:
    """Per-step execution defaults."""
    timeout_seconds: float = 300.0


@dataclass
class LLMConfig:
    """Language-model endpoint configuration (OpenAI-compatible)."""
    base_url: str = "http://localhost:4000/v1"
    api_key: Optional[str] = None
    timeout_seconds: float = 120.0
    default_provider: str = "openai"
    default_model: Optional[str] = None


@dataclass
class GatewayConfig:
    """Capability gateway configuration."""
    base_url: str = "http://localhost:8080"
    token: Optional[str] = None
    timeout_seconds: float = 60.0


@dataclass
class ConduitConfig:
    """Main configuration container."""
    budget: BudgetDefaults
    steps: StepDefaults
    llm: LLMConfig
    gateway: GatewayConfig
    debug: bool = False
    log_level: str = "INFO"


def load_config() -> ConduitConfig:
    """
    Load configuration from environment variables.

    Environment Variables:
        CONDUIT_DEFAULT_MAX_COST_USD: Default workflow cost ceiling (default: 5.0)
        CONDUIT_DEFAULT_MAX_DURATION_SECONDS: Default workflow wall-clock ceiling (default: 1800)
        CONDUIT_STEP_TIMEOUT: Default per-attempt step timeout in seconds (default: 300)
        CONDUIT_LLM_BASE_URL: OpenAI-compatible API base URL
        CONDUIT_LLM_API_KEY: API key for the language-model endpoint
        CONDUIT_LLM_TIMEOUT: Language-model request timeout in seconds (default: 120)
        CONDUIT_LLM_PROVIDER: Default reasoning provider (default: openai)
        CONDUIT_LLM_MODEL: Fallback reasoning model when a workflow sets none (default: unset)
        CONDUIT_GATEWAY_URL: Capability gateway base URL
        CONDUIT_GATEWAY_TOKEN: Bearer token for the capability gateway
        CONDUIT_GATEWAY_TIMEOUT: Capability request timeout in seconds (default: 60)
        CONDUIT_DEBUG: Force DEBUG logging (default: false)
        CONDUIT_LOG_LEVEL: Log level (default: INFO)
    """
    budget = BudgetDefaults(
        max_cost_usd=float(os.getenv("CONDUIT_DEFAULT_MAX_COST_USD", "5.0")),
        max_duration_seconds=float(os.getenv("CONDUIT_DEFAULT_MAX_DURATION_SECONDS", "1800")),
    )

    steps = StepDefaults(
        timeout_seconds=float(os.getenv("CONDUIT_STEP_TIMEOUT", "300")),
    )

    llm = LLMConfig(
        base_url=os.getenv("CONDUIT_LLM_BASE_URL", "http://localhost:4000/v1").rstrip("/"),
        api_key=os.getenv("CONDUIT_LLM_API_KEY"),
        timeout_seconds=float(os.getenv("CONDUIT_LLM_TIMEOUT", "120")),
        default_provider=os.getenv("CONDUIT_LLM_PROVIDER", "openai"),
        default_model=os.getenv("CONDUIT_LLM_MODEL") or None,
    )

    gateway = GatewayConfig(
        base_url=os.getenv("CONDUIT_GATEWAY_URL", "http://localhost:8080").rstrip("/"),
        token=os.getenv("CONDUIT_GATEWAY_TOKEN"),
        timeout_seconds=float(os.getenv("CONDUIT_GATEWAY_TIMEOUT", "60")),
    )

    return ConduitConfig(
        budget=budget,
        steps=steps,
        llm=llm,
        gateway=gateway,
        debug=os.getenv("CONDUIT_DEBUG", "false").lower() in ("true", "1", "yes"),
        log_level=os.getenv("CONDUIT_LOG_LEVEL", "INFO").upper(),
    )


# Singleton config instance
_config: Optional[ConduitConfig] = None


def get_config() -> ConduitConfig:
    """Get the global configuration (lazy-loaded singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for host processes embedding the engine."""
    config = get_config()
    if level is None:
        level = "DEBUG" if config.debug else config.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
