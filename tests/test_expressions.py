"""
Conduit Expression Tests

Tests for {{path}} parsing, resolution and design-time validation.
"""

import pytest

from conduit.core.expressions import (
    ExpressionSyntaxError,
    TemplateResolutionError,
    UnresolvedStepError,
    extract_template_expressions,
    parse_path,
    referenced_step_slug,
    resolve_expression,
    resolve_template_string,
    resolve_templates,
    unwrap_expression,
    validate_template_expressions,
)
from conduit.schemas.execution import StepError, StepResult, StepStatus
from conduit.state.execution_state import create_initial_state, record_step_result


@pytest.fixture
def state():
    s = create_initial_state({"query": "weather", "limit": 3, "tags": ["a", "b"]})
    s = record_step_result(s, "search", StepResult(
        output={"results": [{"url": "https://a.example"}, {"url": "https://b.example"}], "count": 2},
        status=StepStatus.COMPLETED,
        reasoning={"best": "a"},
    ))
    s = record_step_result(s, "fetch-page", StepResult(
        output=None,
        status=StepStatus.FAILED,
        error=StepError(code="ACTION_FAILED", message="boom"),
    ))
    return s


# =============================================================================
# Parsing
# =============================================================================

class TestParsePath:
    """Test dot-notation path parsing."""

    def test_parse_nested_path_with_index(self):
        """Index segments become integers."""
        assert parse_path("steps.search.output.results[0].url") == [
            "steps", "search", "output", "results", 0, "url",
        ]

    def test_parse_strips_whitespace(self):
        assert parse_path("  input.query ") == ["input", "query"]

    def test_parse_hyphenated_slug(self):
        assert parse_path("steps.fetch-page.output") == ["steps", "fetch-page", "output"]

    def test_empty_segment_rejected(self):
        with pytest.raises(ExpressionSyntaxError):
            parse_path("input..query")

    def test_invalid_segment_rejected(self):
        """Non-numeric indexes are malformed."""
        with pytest.raises(ExpressionSyntaxError) as exc:
            parse_path("steps.search.output[x]")
        assert exc.value.code == "TEMPLATE_RESOLUTION_ERROR"

    def test_unwrap_expression(self):
        assert unwrap_expression("{{ input.query }}") == "input.query"
        assert unwrap_expression("input.query") == "input.query"


# =============================================================================
# Resolution
# =============================================================================

class TestResolution:
    """Test resolution against execution state."""

    def test_single_expression_preserves_native_type(self, state):
        """A template that is exactly one expression keeps its type."""
        assert resolve_template_string("{{input.limit}}", state) == 3
        assert resolve_template_string("{{input.tags}}", state) == ["a", "b"]
        assert resolve_template_string("{{steps.search.output.count}}", state) == 2

    def test_single_expression_returns_copy(self, state):
        """Mutating a resolved value never reaches the state."""
        tags = resolve_template_string("{{input.tags}}", state)
        tags.append("c")
        assert resolve_template_string("{{input.tags}}", state) == ["a", "b"]

    def test_mixed_template_renders_text(self, state):
        result = resolve_template_string("Find {{input.query}} x{{input.limit}}", state)
        assert result == "Find weather x3"

    def test_mixed_template_renders_collections_as_json(self, state):
        result = resolve_template_string("tags={{input.tags}}", state)
        assert result == 'tags=["a","b"]'

    def test_mixed_template_renders_none_as_empty(self, state):
        assert resolve_template_string("[{{input.missing}}]", state) == "[]"

    def test_nested_index_path(self, state):
        assert resolve_expression("steps.search.output.results[1].url", state) == "https://b.example"

    def test_reasoning_and_status(self, state):
        assert resolve_expression("steps.search.reasoning.best", state) == "a"
        assert resolve_expression("steps.search.status", state) == "completed"
        assert resolve_expression("steps.fetch-page.status", state) == "failed"

    def test_dead_ends_resolve_to_none(self, state):
        """Missing keys, out-of-range indexes and type mismatches give None."""
        assert resolve_expression("input.missing.deeper", state) is None
        assert resolve_expression("steps.search.output.results[9].url", state) is None
        assert resolve_expression("input.query.length", state) is None
        assert resolve_expression("input.limit[0]", state) is None

    def test_unrecorded_step_raises(self, state):
        """Referencing a step that has not run is an error."""
        with pytest.raises(UnresolvedStepError) as exc:
            resolve_expression("steps.summarize.output", state)
        assert exc.value.step_slug == "summarize"
        assert "hasn't executed yet" in str(exc.value)

    def test_unknown_root_resolves_to_none(self, state):
        assert resolve_expression("env.HOME", state) is None

    def test_resolve_templates_deep_walk(self, state):
        mapping = {
            "q": "{{input.query}}",
            "urls": ["{{steps.search.output.results[0].url}}", "static"],
            "nested": {"limit": "{{input.limit}}", "flag": True, "none": None},
            "n": 7,
        }
        assert resolve_templates(mapping, state) == {
            "q": "weather",
            "urls": ["https://a.example", "static"],
            "nested": {"limit": 3, "flag": True, "none": None},
            "n": 7,
        }

    def test_resolve_templates_propagates_errors(self, state):
        with pytest.raises(TemplateResolutionError):
            resolve_templates({"x": "{{steps.later.output}}"}, state)


# =============================================================================
# Design-time Helpers
# =============================================================================

class TestDesignTimeHelpers:
    """Test expression extraction and validation."""

    def test_extract_expressions(self):
        value = {"a": "{{ input.q }} and {{steps.s1.output}}", "b": ["{{steps.s2.status}}"], "c": 1}
        assert extract_template_expressions(value) == ["input.q", "steps.s1.output", "steps.s2.status"]

    def test_referenced_step_slug(self):
        assert referenced_step_slug("steps.search.output") == "search"
        assert referenced_step_slug("input.query") is None

    def test_validate_accepts_known_steps(self):
        assert validate_template_expressions({"x": "{{steps.search.output}}"}, ["search"]) == []

    def test_validate_rejects_unknown_step(self):
        errors = validate_template_expressions({"x": "{{steps.later.output}}"}, ["search"])
        assert len(errors) == 1
        assert "later" in errors[0]

    def test_validate_rejects_bad_root(self):
        errors = validate_template_expressions("{{env.HOME}}", [])
        assert "must start with 'input' or 'steps'" in errors[0]

    def test_validate_rejects_bare_steps(self):
        errors = validate_template_expressions("{{steps}}", ["search"])
        assert "must reference a step slug" in errors[0]

    def test_validate_reports_syntax_errors(self):
        errors = validate_template_expressions("{{input..q}}", [])
        assert "Empty path segment" in errors[0]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
