"""Validation of upstream command files before they are installed."""

from cmdsync.validator.yaml_validator import (
    Severity,
    ValidationIssue,
    ValidationResult,
    validate_items,
    validate_single,
)

__all__ = [
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "validate_items",
    "validate_single",
]
