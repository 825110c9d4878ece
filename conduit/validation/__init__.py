"""Conduit Validation Module - Design-time workflow checks."""

from .workflow_validator import WorkflowValidator, workflow_validator
from .issues import ValidationIssue, ValidationResult, ValidationSeverity

__all__ = [
    "WorkflowValidator",
    "workflow_validator",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSeverity",
]
