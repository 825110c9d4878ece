"""
Conduit Validation Issues

Structures reported by the design-time workflow validator.
"""

from __future__ import annotations
from typing import List, Optional
from dataclasses import dataclass, field
from enum import Enum


class ValidationSeverity(str, Enum):
    """Severity of validation issues."""
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single validation issue."""
    code: str
    severity: ValidationSeverity
    message: str
    steps: Optional[List[str]] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "steps": self.steps,
        }


@dataclass
class ValidationResult:
    """Result of workflow validation."""
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    def has_blocking(self) -> bool:
        """Check if there are blocking errors."""
        return any(e.severity == ValidationSeverity.BLOCKING for e in self.errors)

    @property
    def codes(self) -> List[str]:
        return [i.code for i in self.errors + self.warnings]
