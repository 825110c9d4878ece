"""
Conduit Workflow Validator

Design-time checks on raw workflow definitions (plain dicts as stored by the
host application), and loading of validated definitions into Workflow models.

Expression rules:
- input mappings may only reference strictly earlier steps
- conditions and output fields may reference any step in the definition;
  a condition pointing at a later step always evaluates falsy, so it warns
"""

from __future__ import annotations
from typing import Dict, List, Any, Optional
import logging

from pydantic import ValidationError

from ..core.expressions import (
    TemplateResolutionError,
    extract_template_expressions,
    referenced_step_slug,
    unwrap_expression,
    validate_template_expressions,
)
from ..core.orchestrator import WorkflowDefinitionError
from ..schemas.workflow import MAX_STEPS, CapabilityKind, Workflow
from .issues import ValidationIssue, ValidationResult, ValidationSeverity


logger = logging.getLogger(__name__)


def _blocking(code: str, message: str, steps: Optional[List[str]] = None) -> ValidationIssue:
    return ValidationIssue(code=code, severity=ValidationSeverity.BLOCKING, message=message, steps=steps)


def _warning(code: str, message: str, steps: Optional[List[str]] = None) -> ValidationIssue:
    return ValidationIssue(code=code, severity=ValidationSeverity.WARNING, message=message, steps=steps)


class WorkflowValidator:
    """
    Validates workflow definitions before they are activated.

    Features:
    - Step numbering and slug uniqueness
    - Capability reference completeness
    - Expression syntax, roots and step ordering
    - Reasoning configuration completeness
    """

    def validate(self, definition: Dict[str, Any]) -> ValidationResult:
        """Validate a raw workflow definition without loading it."""
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        steps = [s for s in definition.get("steps") or [] if isinstance(s, dict)]

        if not steps:
            errors.append(_blocking("E_EMPTY_WORKFLOW", "Workflow has no steps"))
            return ValidationResult(valid=False, errors=errors, warnings=warnings)

        if len(steps) > MAX_STEPS:
            errors.append(_blocking(
                "E_TOO_MANY_STEPS",
                f"Workflow has {len(steps)} steps (max: {MAX_STEPS})",
            ))

        steps = sorted(steps, key=lambda s: s.get("step_number") if isinstance(s.get("step_number"), int) else 0)

        # Numbering
        numbers = [s.get("step_number") for s in steps]
        if numbers != list(range(1, len(steps) + 1)):
            errors.append(_blocking(
                "E_STEP_NUMBERING",
                f"Step numbers must be contiguous from 1, got {numbers}",
            ))

        # Slugs
        all_slugs: List[str] = []
        for step in steps:
            slug = step.get("slug", "")
            if slug in all_slugs:
                errors.append(_blocking("E_DUPLICATE_SLUG", f"Duplicate step slug: {slug}", [slug]))
            all_slugs.append(slug)

        reasoning_default = definition.get("reasoning_config")

        for index, step in enumerate(steps):
            slug = step.get("slug", "")
            earlier = all_slugs[:index]

            self._check_capability(step, slug, errors)
            self._check_reasoning(step, slug, reasoning_default, errors, warnings)

            # Input mapping: earlier steps only
            for message in validate_template_expressions(step.get("input_mapping") or {}, earlier):
                errors.append(_blocking("E_INVALID_REFERENCE", f"Step '{slug}': {message}", [slug]))

            # Condition: any step, later steps warn
            condition = step.get("condition")
            if isinstance(condition, dict) and condition.get("expression"):
                self._check_condition(condition["expression"], slug, all_slugs, earlier, errors, warnings)

        # Output mapping: any step
        output_mapping = definition.get("output_mapping") or {}
        for name, field_def in (output_mapping.get("fields") or {}).items():
            source = field_def.get("source", "") if isinstance(field_def, dict) else ""
            expression = "{{" + unwrap_expression(source) + "}}"
            for message in validate_template_expressions(expression, all_slugs):
                errors.append(_blocking("E_INVALID_OUTPUT_REFERENCE", f"Output field '{name}': {message}"))

        valid = len(errors) == 0
        return ValidationResult(valid=valid, errors=errors, warnings=warnings)

    def _check_capability(self, step: Dict[str, Any], slug: str, errors: List[ValidationIssue]) -> None:
        capability = step.get("capability")
        if capability is None:
            if not step.get("reasoning_enabled"):
                errors.append(_blocking(
                    "E_MISSING_CAPABILITY",
                    f"Step '{slug}' has no capability and reasoning is disabled",
                    [slug],
                ))
            return

        kind = capability.get("kind")
        identifier = capability.get("identifier") or ""
        if kind not in {k.value for k in CapabilityKind}:
            errors.append(_blocking("E_UNKNOWN_KIND", f"Step '{slug}' has unknown capability kind: {kind}", [slug]))
        if not identifier:
            errors.append(_blocking("E_MISSING_IDENTIFIER", f"Step '{slug}' capability has no identifier", [slug]))
        elif kind == CapabilityKind.ACTION.value:
            namespace, sep, name = identifier.partition("/")
            if not (sep and namespace and name):
                errors.append(_blocking(
                    "E_INVALID_IDENTIFIER",
                    f"Step '{slug}' action identifier must be 'namespace/name', got '{identifier}'",
                    [slug],
                ))

    def _check_reasoning(
        self,
        step: Dict[str, Any],
        slug: str,
        reasoning_default: Optional[Dict[str, Any]],
        errors: List[ValidationIssue],
        warnings: List[ValidationIssue],
    ) -> None:
        if not step.get("reasoning_enabled"):
            return
        if not step.get("reasoning_prompt"):
            errors.append(_blocking(
                "E_REASONING_PROMPT_MISSING",
                f"Step '{slug}' enables reasoning without a prompt",
                [slug],
            ))
        if not step.get("reasoning_config") and not reasoning_default:
            warnings.append(_warning(
                "W_REASONING_CONFIG_MISSING",
                f"Step '{slug}' enables reasoning but neither it nor the workflow has a reasoning config",
                [slug],
            ))

    def _check_condition(
        self,
        expression: str,
        slug: str,
        all_slugs: List[str],
        earlier: List[str],
        errors: List[ValidationIssue],
        warnings: List[ValidationIssue],
    ) -> None:
        wrapped = "{{" + unwrap_expression(expression) + "}}"
        messages = validate_template_expressions(wrapped, all_slugs)
        for message in messages:
            errors.append(_blocking("E_INVALID_CONDITION", f"Step '{slug}' condition: {message}", [slug]))
        if messages:
            return

        for expr in extract_template_expressions(wrapped):
            try:
                target = referenced_step_slug(expr)
            except TemplateResolutionError:
                continue
            if target is not None and target not in earlier:
                warnings.append(_warning(
                    "W_CONDITION_FORWARD_REF",
                    f"Step '{slug}' condition references step '{target}' which has not run "
                    f"yet at that point; it will always evaluate falsy",
                    [slug, target],
                ))

    def load(self, definition: Dict[str, Any]) -> Workflow:
        """
        Validate and build a Workflow.

        Raises:
            WorkflowDefinitionError: If validation finds blocking issues or the
                definition does not match the schema
        """
        validation = self.validate(definition)
        if validation.has_blocking():
            first = validation.errors[0]
            code = "EMPTY_WORKFLOW" if first.code == "E_EMPTY_WORKFLOW" else "INVALID_WORKFLOW"
            raise WorkflowDefinitionError(code, first.message, issues=validation.errors)

        for warning in validation.warnings:
            logger.warning(f"Workflow '{definition.get('name')}': {warning.message}")

        try:
            return Workflow.model_validate(definition)
        except ValidationError as e:
            raise WorkflowDefinitionError("INVALID_WORKFLOW", str(e)) from e


# Singleton validator
workflow_validator = WorkflowValidator()
