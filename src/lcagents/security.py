"""Path and name safety checks for LCAgents."""

from __future__ import annotations

import re
from pathlib import Path

RESOURCE_NAME_PATTERN = r'^[a-zA-Z0-9][a-zA-Z0-9_.-]*$'


def validate_file_path(base_dir: Path, file_path: Path | str) -> bool:
    """
    Validate that a file path stays inside a base directory.

    Args:
        base_dir: The directory that should contain the file
        file_path: Path relative to ``base_dir`` (absolute paths are rejected
            unless they point inside ``base_dir``)

    Returns:
        True if the path is safe, False otherwise
    """
    try:
        if isinstance(file_path, str):
            file_path = Path(file_path)

        base_resolved = base_dir.resolve()
        target_resolved = (base_dir / file_path).resolve()
        return target_resolved.is_relative_to(base_resolved)
    except (OSError, ValueError):
        return False


def validate_identifier(identifier: str, pattern: str = r'^[a-zA-Z0-9_-]+$') -> bool:
    """
    Validate that an identifier matches a safe pattern.

    Args:
        identifier: The identifier to validate
        pattern: The regex pattern to match against

    Returns:
        True if valid, False otherwise
    """
    return bool(re.match(pattern, identifier))


def validate_resource_name(name: str) -> bool:
    """Check a resource name before it is used as a filename."""
    if not name or ".." in name:
        return False
    return validate_identifier(name, RESOURCE_NAME_PATTERN)


def sanitize_name(name: str) -> str:
    """Lowercase a name and collapse anything unsafe into single hyphens."""
    cleaned = re.sub(r'[^a-z0-9-]', '-', name.lower())
    cleaned = re.sub(r'-+', '-', cleaned)
    return cleaned.strip('-')
