"""
Conduit Reasoning Prompt Builder

Builds the system and user prompts for reasoning calls. The model acts as an
interpreter of step output and workflow state; it returns JSON and never
calls tools.
"""

from __future__ import annotations
from typing import Dict, Any, Optional
from dataclasses import dataclass
import json

from ..state.execution_state import ExecutionState, create_state_summary


PROMPT_OUTPUT_MAX_CHARS = 8000

SYSTEM_PROMPT = """You are a data processing assistant running inside a multi-step workflow.

Read the current step's output together with the workflow state accumulated so far, and produce structured JSON for the steps that follow.

# Rules:
1. Respond with a single valid JSON object and nothing else. No markdown, no code fences, no prose.
2. Base every value on the data you were given. Never fabricate data that is not present in the inputs.
3. When the data is ambiguous, infer reasonably and record the inference in your output.
4. Keep the structure consistent and easy for later steps to reference."""

REASONING_ONLY_MARKER = "(No tool output: this is a reasoning-only step)"


@dataclass
class BuiltPrompt:
    system_prompt: str
    user_prompt: str


def format_for_prompt(value: Any, max_chars: int = PROMPT_OUTPUT_MAX_CHARS) -> str:
    text = json.dumps(value, indent=2, default=str, ensure_ascii=False)
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}\n... (truncated, showing first {max_chars} characters)"


def build_system_prompt(output_schema: Optional[Dict[str, Any]] = None) -> str:
    parts = [SYSTEM_PROMPT]
    if output_schema:
        parts.append("\n# Expected Output Schema:")
        parts.append(json.dumps(output_schema, indent=2))
        parts.append("\nYour output must conform to this JSON schema.")
    return "\n".join(parts)


def build_user_prompt(
    reasoning_prompt: str,
    step_output: Any,
    state: ExecutionState,
    step_name: str,
    step_number: int,
    total_steps: int,
) -> str:
    parts = [
        f"# Workflow Progress: Step {step_number} of {total_steps}",
        f"Step Name: {step_name}",
        "\n# Current Step Output:",
        format_for_prompt(step_output) if step_output is not None else REASONING_ONLY_MARKER,
        "\n# Workflow State So Far:",
        create_state_summary(state),
        "\n# Your Task:",
        reasoning_prompt,
        "\n# Instructions:",
        "Using the step output and workflow state above, produce structured JSON.",
        "Your output is stored and made available to later workflow steps.",
        "Return only valid JSON.",
    ]
    return "\n".join(parts)


def build_reasoning_prompt(
    reasoning_prompt: str,
    step_output: Any,
    state: ExecutionState,
    step_name: str,
    step_number: int,
    total_steps: int,
    output_schema: Optional[Dict[str, Any]] = None,
) -> BuiltPrompt:
    return BuiltPrompt(
        system_prompt=build_system_prompt(output_schema),
        user_prompt=build_user_prompt(
            reasoning_prompt, step_output, state, step_name, step_number, total_steps
        ),
    )
