from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

import yaml

from .layers import LayerManager
from .models import RESOURCE_EXTENSIONS, RESOURCE_TYPES, Resource

MAX_RESOURCE_SIZE = 1024 * 1024


@dataclass
class ValidationIssue:
    level: str
    message: str


@dataclass
class ValidationResult:
    issues: list[ValidationIssue]

    @property
    def ok(self) -> bool:
        return not any(issue.level == "error" for issue in self.issues)

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == "warning"]


def validate_resource_type(manager: LayerManager, resource_type: str) -> ValidationResult:
    """Report names defined in more than one layer for a resource type.

    Shadowing is legal, so each duplicate is a warning naming the winning layer.
    """
    issues: list[ValidationIssue] = []
    if resource_type not in RESOURCE_TYPES:
        issues.append(
            ValidationIssue(
                "error",
                f"Invalid resource type: {resource_type}. Valid types: {', '.join(RESOURCE_TYPES)}",
            )
        )
        return ValidationResult(issues)

    try:
        entries = manager.list_layer_entries(resource_type)
    except OSError as exc:
        issues.append(ValidationIssue("error", f"Cannot list {resource_type}: {exc}"))
        return ValidationResult(issues)

    by_name: dict[str, list[Resource]] = defaultdict(list)
    for entry in entries:
        by_name[entry.name].append(entry)

    for name, defined in by_name.items():
        if len(defined) < 2:
            continue
        layers = ", ".join(entry.source.value for entry in defined)
        winner = max(defined, key=lambda entry: entry.source.precedence)
        issues.append(
            ValidationIssue(
                "warning",
                f"{name} is defined in {len(defined)} layers ({layers}); {winner.source.value} takes precedence",
            )
        )

    return ValidationResult(issues)


def validate_resource_file(path: Path, max_file_size: int = MAX_RESOURCE_SIZE) -> ValidationResult:
    issues: list[ValidationIssue] = []

    if not path.is_file():
        issues.append(ValidationIssue("error", f"Resource file not found: {path}"))
        return ValidationResult(issues)

    suffix = path.suffix.lower()
    if suffix not in RESOURCE_EXTENSIONS:
        issues.append(
            ValidationIssue(
                "warning",
                f"Unsupported extension {suffix or '(none)'}; expected one of {', '.join(RESOURCE_EXTENSIONS)}",
            )
        )

    try:
        size = path.stat().st_size
    except OSError as exc:
        issues.append(ValidationIssue("error", f"Cannot stat resource: {exc}"))
        return ValidationResult(issues)
    if size > max_file_size:
        issues.append(
            ValidationIssue("error", f"Resource too large: {size} bytes (max {max_file_size})")
        )
        return ValidationResult(issues)

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        issues.append(ValidationIssue("error", f"Cannot read resource as UTF-8: {exc}"))
        return ValidationResult(issues)

    if not content.strip():
        issues.append(ValidationIssue("error", "Resource file is empty"))
        return ValidationResult(issues)

    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            issues.append(ValidationIssue("error", f"Invalid YAML: {exc}"))
            return ValidationResult(issues)
        if not isinstance(data, dict):
            issues.append(ValidationIssue("warning", "YAML resource should contain a mapping"))
    elif suffix == ".md":
        if not any(line.startswith("# ") for line in content.splitlines()):
            issues.append(ValidationIssue("warning", "Missing top-level heading (# ...)"))

    return ValidationResult(issues)
