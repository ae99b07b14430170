"""Validator for YAML command files fetched from upstream.

Markdown commands are free-form and skipped. YAML commands must parse,
should carry a ``prompt`` or ``description``, and numeric tuning fields
must be in range. Command names must be unique within one version.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import yaml

from cmdsync.models import Item

KNOWN_MODEL_PREFIXES = ("claude-3", "claude-opus", "claude-sonnet")


class Severity(Enum):
    ERROR = "error"  # Blocks install unless forced
    WARNING = "warning"  # Reported only


@dataclass
class ValidationIssue:
    """A single problem found in one command file."""

    file: str
    message: str
    severity: Severity
    line: int | None = None

    def __str__(self) -> str:
        location = f"{self.file}:{self.line + 1}" if self.line is not None else self.file
        return f"{location}: {self.message}"


@dataclass
class ValidationResult:
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def summary(self) -> str:
        status = "PASS" if self.valid else "FAIL"
        return f"[{status}] {len(self.errors)} error(s), {len(self.warnings)} warning(s)"


def validate_items(items: list[Item]) -> ValidationResult:
    """Validate every YAML command in *items*."""
    result = ValidationResult()
    seen_names: dict[str, str] = {}

    for item in items:
        if item.path.endswith(".md"):
            continue

        try:
            data = yaml.safe_load(item.content)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            result.issues.append(
                ValidationIssue(
                    file=item.path,
                    message=f"Invalid YAML: {e}",
                    severity=Severity.ERROR,
                    line=mark.line if mark is not None else None,
                )
            )
            continue

        if data is None:
            continue
        if not isinstance(data, dict):
            result.issues.append(
                ValidationIssue(item.path, "Command file must be a YAML mapping", Severity.ERROR)
            )
            continue

        result.issues.extend(_check_schema(item, data))

        name = str(data.get("name") or item.identity)
        if name in seen_names:
            result.issues.append(
                ValidationIssue(
                    file=item.path,
                    message=f'Duplicate command name "{name}" (also in {seen_names[name]})',
                    severity=Severity.ERROR,
                )
            )
        else:
            seen_names[name] = item.path

    return result


def validate_single(content: str, file_name: str) -> ValidationResult:
    """Validate one command file's content."""
    return validate_items([Item(identity=file_name, path=file_name, content=content)])


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_schema(item: Item, data: dict) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if not data.get("prompt") and not data.get("description"):
        issues.append(
            ValidationIssue(
                item.path,
                'Command should have either a "prompt" or "description" field',
                Severity.WARNING,
            )
        )

    if "temperature" in data:
        temperature = data["temperature"]
        if not _is_number(temperature) or not 0 <= temperature <= 2:
            issues.append(
                ValidationIssue(item.path, "Temperature must be a number between 0 and 2", Severity.ERROR)
            )

    if "max_tokens" in data:
        max_tokens = data["max_tokens"]
        if not _is_number(max_tokens) or max_tokens < 1:
            issues.append(
                ValidationIssue(item.path, "max_tokens must be a positive number", Severity.ERROR)
            )

    if "model" in data:
        model = str(data["model"])
        if not model.startswith(KNOWN_MODEL_PREFIXES):
            issues.append(
                ValidationIssue(
                    item.path,
                    f'Unknown model "{model}". This may be intentional for future models.',
                    Severity.WARNING,
                )
            )

    return issues
