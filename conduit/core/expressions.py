"""
Conduit Expression Resolver

Parses and resolves ``{{path}}`` references inside step input mappings.

Paths are dot-separated identifiers, each optionally followed by one
``[n]`` index:

    {{input.query}}                         - workflow input parameter
    {{steps.search.output}}                 - full output of a step
    {{steps.search.output.results[0].url}}  - nested property + array index
    {{steps.search.reasoning}}              - reasoning output of a step
    {{steps.search.status}}                 - status of a step

A missing or mistyped intermediate resolves to None. Referencing a step that
has not recorded a result yet is an error, since it means the definition
orders its steps wrongly.
"""

from __future__ import annotations
from typing import List, Any, Iterable, Optional, Union
import copy
import json
import re

from ..state.execution_state import ExecutionState


TEMPLATE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

PATH_SEGMENT_PATTERN = re.compile(r"^([A-Za-z_$][A-Za-z0-9_$-]*)(?:\[(\d+)\])?$")

VALID_ROOTS = ("input", "steps")

PathSegment = Union[str, int]


# =============================================================================
# Errors
# =============================================================================

class TemplateResolutionError(Exception):
    """An expression could not be resolved."""

    code = "TEMPLATE_RESOLUTION_ERROR"

    def __init__(self, expression: str, message: str):
        super().__init__(f"Template resolution error for '{expression}': {message}")
        self.expression = expression


class ExpressionSyntaxError(TemplateResolutionError):
    """The expression path is malformed."""


class UnresolvedStepError(TemplateResolutionError):
    """The expression references a step with no recorded result."""

    def __init__(self, expression: str, step_slug: str):
        super().__init__(
            expression,
            f"Step '{step_slug}' referenced in template but hasn't executed yet",
        )
        self.step_slug = step_slug


# =============================================================================
# Path Parsing
# =============================================================================

def parse_path(path: str) -> List[PathSegment]:
    """
    Parse a dot-notation path into segments.

    Examples:
        "input.query" -> ["input", "query"]
        "steps.search.output.results[0].url"
            -> ["steps", "search", "output", "results", 0, "url"]

    Raises:
        ExpressionSyntaxError: On empty or malformed segments
    """
    stripped = path.strip()
    segments: List[PathSegment] = []

    for raw in stripped.split("."):
        if not raw:
            raise ExpressionSyntaxError(
                stripped,
                "Empty path segment (double dots or leading/trailing dot)",
            )

        match = PATH_SEGMENT_PATTERN.match(raw)
        if not match:
            raise ExpressionSyntaxError(stripped, f"Invalid path segment: '{raw}'")

        segments.append(match.group(1))
        if match.group(2) is not None:
            segments.append(int(match.group(2)))

    return segments


def resolve_path_value(value: Any, segments: Iterable[PathSegment]) -> Any:
    """Walk segments into value. Any dead end yields None."""
    current = value
    for segment in segments:
        if current is None:
            return None
        if isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(segment)
    return current


# =============================================================================
# Expression Resolution
# =============================================================================

def resolve_expression(expression: str, state: ExecutionState) -> Any:
    """
    Resolve one expression (without braces) against state.

    Raises:
        ExpressionSyntaxError: If the path is malformed
        UnresolvedStepError: If a referenced step has no recorded result
    """
    trimmed = expression.strip()
    segments = parse_path(trimmed)
    root, rest = segments[0], segments[1:]

    if root == "input":
        return resolve_path_value(dict(state.input), rest)

    if root == "steps":
        if not rest:
            return {slug: r.to_dict() for slug, r in state.steps.items()}
        slug = rest[0]
        if isinstance(slug, int):
            return None
        result = state.steps.get(slug)
        if result is None:
            raise UnresolvedStepError(trimmed, slug)
        return resolve_path_value(result.to_dict(), rest[1:])

    # Unknown roots are rejected at design time; at run time they resolve to nothing.
    return None


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str, ensure_ascii=False)
    return str(value)


def resolve_template_string(template: str, state: ExecutionState) -> Any:
    """
    Resolve every expression in a string.

    A string that is exactly one ``{{expr}}`` returns the resolved value with
    its native type. Otherwise expressions are interpolated as text: None
    renders empty and dicts/lists render as compact JSON.
    """
    single = TEMPLATE_PATTERN.fullmatch(template)
    if single:
        return copy.deepcopy(resolve_expression(single.group(1), state))

    return TEMPLATE_PATTERN.sub(
        lambda m: _stringify(resolve_expression(m.group(1), state)),
        template,
    )


def resolve_templates(value: Any, state: ExecutionState) -> Any:
    """Deep-walk a value and resolve every template string in it."""
    if isinstance(value, str):
        if TEMPLATE_PATTERN.search(value):
            return resolve_template_string(value, state)
        return value

    if isinstance(value, list):
        return [resolve_templates(item, state) for item in value]

    if isinstance(value, dict):
        return {key: resolve_templates(item, state) for key, item in value.items()}

    return value


# =============================================================================
# Design-time Helpers
# =============================================================================

def extract_template_expressions(value: Any) -> List[str]:
    """Collect every expression (trimmed, without braces) in a nested value."""
    expressions: List[str] = []

    def walk(v: Any) -> None:
        if isinstance(v, str):
            expressions.extend(m.group(1).strip() for m in TEMPLATE_PATTERN.finditer(v))
        elif isinstance(v, list):
            for item in v:
                walk(item)
        elif isinstance(v, dict):
            for item in v.values():
                walk(item)

    walk(value)
    return expressions


def referenced_step_slug(expression: str) -> Optional[str]:
    """Return the step slug an expression points at, if any."""
    segments = parse_path(expression)
    if segments[0] == "steps" and len(segments) > 1 and isinstance(segments[1], str):
        return segments[1]
    return None


def validate_template_expressions(value: Any, available_step_slugs: List[str]) -> List[str]:
    """
    Check every expression in a value for valid syntax, a valid root and a
    known step slug. Returns a list of error messages (empty if all valid).
    """
    errors: List[str] = []

    for expr in extract_template_expressions(value):
        try:
            segments = parse_path(expr)
        except TemplateResolutionError as e:
            errors.append(str(e))
            continue

        root = segments[0]
        if root not in VALID_ROOTS:
            errors.append(f"Expression '{expr}' must start with 'input' or 'steps'")
            continue

        if root == "steps":
            if len(segments) < 2 or not isinstance(segments[1], str):
                errors.append(f"Expression '{expr}' must reference a step slug after 'steps.'")
                continue
            slug = segments[1]
            if slug not in available_step_slugs:
                errors.append(
                    f"Expression '{expr}' references step '{slug}' which is not available. "
                    f"Available steps: {', '.join(available_step_slugs)}"
                )

    return errors


def unwrap_expression(expression: str) -> str:
    """Strip surrounding ``{{ }}`` from an expression if present."""
    stripped = expression.strip()
    match = TEMPLATE_PATTERN.fullmatch(stripped)
    return match.group(1).strip() if match else stripped

