"""
Conduit Output Projection Tests

Tests for building the final workflow output from terminal state.
"""

import pytest

from conduit.core.output_projector import last_completed_output, resolve_output_mapping
from conduit.schemas.execution import StepError, StepResult, StepStatus
from conduit.schemas.workflow import OutputField, OutputMapping
from conduit.state.execution_state import create_initial_state, record_step_result


@pytest.fixture
def state():
    s = create_initial_state({"topic": "rust"})
    s = record_step_result(s, "search", StepResult(
        output={"hits": [{"title": "Rust 2.0"}]},
        status=StepStatus.COMPLETED,
        reasoning={"best": "Rust 2.0"},
    ))
    s = record_step_result(s, "fetch", StepResult(
        output=None,
        status=StepStatus.FAILED,
        error=StepError(code="ACTION_FAILED", message="404"),
    ))
    s = record_step_result(s, "notify", StepResult(output={"sent": True}, status=StepStatus.COMPLETED))
    return s


class TestOutputMapping:
    """Test field-by-field projection."""

    def test_fields_resolved_independently(self, state):
        """A field that cannot be resolved is None; the others still resolve."""
        mapping = OutputMapping(fields={
            "title": OutputField(source="steps.search.output.hits[0].title"),
            "best": OutputField(source="{{steps.search.reasoning.best}}"),
            "page": OutputField(source="steps.fetch.output.body"),
            "summary": OutputField(source="steps.summarize.output"),
            "topic": OutputField(source="input.topic"),
        })

        assert resolve_output_mapping(mapping, state) == {
            "title": "Rust 2.0",
            "best": "Rust 2.0",
            "page": None,
            "summary": None,
            "topic": "rust",
        }

    def test_malformed_source_is_none(self, state):
        mapping = OutputMapping(fields={"bad": OutputField(source="steps..x")})
        assert resolve_output_mapping(mapping, state) == {"bad": None}

    def test_include_meta(self, state):
        skipped = record_step_result(state, "archive", StepResult(output=None, status=StepStatus.SKIPPED))
        mapping = OutputMapping(fields={}, include_meta=True)

        meta = resolve_output_mapping(mapping, skipped)["_meta"]

        assert meta["steps_completed"] == 2
        assert meta["steps_failed"] == 1
        assert meta["steps_skipped"] == 1
        assert meta["step_results"]["fetch"] == {"status": "failed", "error": "404"}
        assert meta["step_results"]["search"] == {"status": "completed", "error": None}


class TestFallbackOutput:
    """Test the output used when no mapping is defined."""

    def test_last_completed_output(self, state):
        assert last_completed_output(state) == {"sent": True}

    def test_reasoning_preferred(self):
        s = record_step_result(create_initial_state(), "a", StepResult(
            output={"raw": 1}, status=StepStatus.COMPLETED, reasoning={"clean": 1},
        ))
        s = record_step_result(s, "b", StepResult(output=None, status=StepStatus.FAILED))
        assert last_completed_output(s) == {"clean": 1}

    def test_fallback_is_a_copy(self, state):
        output = last_completed_output(state)
        output["sent"] = False

        assert last_completed_output(state) == {"sent": True}

    def test_nothing_completed(self):
        s = record_step_result(create_initial_state(), "a", StepResult(output=None, status=StepStatus.SKIPPED))
        assert last_completed_output(s) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
