"""Resource search, lookup and creation on top of the layer resolver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .layers import LayerManager
from .models import (
    CREATABLE_TYPES,
    RESOURCE_EXTENSIONS,
    SEARCHABLE_TYPES,
    Layer,
    Resource,
    ResourceConflict,
    base_name,
)
from .security import sanitize_name, validate_file_path, validate_resource_name
from .templates import TemplateManager

logger = logging.getLogger(__name__)

NAME_PREFIXES = ("custom", "new", "enhanced", "improved", "v2")
NAME_SUFFIXES = ("template", "v2", "new", "custom", "ext")


class ResourceError(Exception):
    """Base exception for resource operations."""
    pass


class InvalidResourceTypeError(ResourceError):
    """Raised when a resource type cannot be used for the operation."""
    pass


class ResourceConflictError(ResourceError):
    """Raised when a new resource would collide with an existing one."""

    def __init__(self, conflict: ResourceConflict):
        self.conflict = conflict
        winner = conflict.winner
        super().__init__(
            f"Resource '{conflict.requested}' already exists in the {winner.source.value} layer: {winner.path}"
        )


class ConflictPolicy(str, Enum):
    ABORT = "abort"
    RENAME = "rename"
    EXTEND = "extend"
    OVERRIDE = "override"


@dataclass
class SearchResult:
    resource: Resource
    matched_on: str
    snippet: Optional[str] = None

    @property
    def type(self) -> str:
        return self.resource.type

    @property
    def name(self) -> str:
        return self.resource.name


@dataclass
class CreateResult:
    path: Path
    name: str
    policy: ConflictPolicy
    conflict: Optional[ResourceConflict] = None
    imported_from: Optional[Path] = None


def extract_snippet(content: str, query: str, max_matches: int = 5) -> str:
    """Return the lines of ``content`` that contain ``query``.

    Matching lines are prefixed with ``>>> ``. Without a match, the first
    ``max_matches`` lines are returned instead.
    """
    lines = content.split("\n")
    lowered = query.lower()
    matches = [f">>> {line}" for line in lines if line and lowered in line.lower()]
    if not matches:
        return "\n".join(lines[:max_matches])
    return "\n".join(matches[:max_matches])


def _is_text_resource(name: str) -> bool:
    return name.lower().endswith(RESOURCE_EXTENSIONS)


def search_resources(
    manager: LayerManager,
    query: str,
    types: Iterable[str] = SEARCHABLE_TYPES,
    snippet_lines: int = 3,
) -> List[SearchResult]:
    """Search resolved resources by name, then by content.

    A type or file that cannot be read is logged and skipped so it never hides
    results from the rest.
    """
    needle = query.lower()
    results: List[SearchResult] = []
    seen: set[tuple[str, str]] = set()

    for resource_type in types:
        try:
            resources = manager.list_resources(resource_type)
        except OSError as exc:
            logger.warning("Skipping %s: %s", resource_type, exc)
            continue

        for resource in resources:
            key = (resource.type, resource.name)
            if key in seen:
                continue

            if needle in resource.name.lower():
                results.append(SearchResult(resource, "name"))
                seen.add(key)
                continue

            if not _is_text_resource(resource.name):
                continue
            try:
                content = manager.read_resource(resource_type, resource.name)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Cannot read %s: %s", resource.path, exc)
                continue
            if content and needle in content.lower():
                results.append(
                    SearchResult(resource, "content", extract_snippet(content, query, snippet_lines))
                )
                seen.add(key)

    return results


def _name_matches(resource: Resource, name: str) -> bool:
    return resource.name == name or resource.base_name.lower() == base_name(name).lower()


def find_resource(
    manager: LayerManager,
    name: str,
    types: Iterable[str] = SEARCHABLE_TYPES,
) -> Optional[Tuple[str, Resource]]:
    """Find a resource by name across types.

    Exact names win over extension-normalized matches.
    """
    fallback: Optional[Tuple[str, Resource]] = None
    for resource_type in types:
        try:
            resources = manager.list_resources(resource_type)
        except OSError as exc:
            logger.warning("Skipping %s: %s", resource_type, exc)
            continue
        for resource in resources:
            if resource.name == name:
                return resource_type, resource
            if fallback is None and _name_matches(resource, name):
                fallback = (resource_type, resource)
    return fallback


def close_matches(
    manager: LayerManager,
    name: str,
    types: Iterable[str] = SEARCHABLE_TYPES,
    limit: int = 3,
) -> List[str]:
    """Suggest resource names similar to ``name``."""
    names: List[str] = []
    for resource_type in types:
        try:
            names.extend(r.name for r in manager.list_resources(resource_type))
        except OSError:
            continue
    return get_close_matches(name, names, n=limit, cutoff=0.6)


def _target_path(manager: LayerManager, resource_type: str, name: str) -> Path:
    custom_root = manager.layer_root(Layer.CUSTOM)
    relative = Path(resource_type) / f"{name}.md"
    if not validate_file_path(custom_root, relative):
        raise ResourceError(f"Resource path escapes the custom layer: {relative}")
    return custom_root / relative


def _check_creatable(resource_type: str, name: str) -> None:
    if resource_type not in CREATABLE_TYPES:
        raise InvalidResourceTypeError(
            f"Invalid resource type: {resource_type}. Valid types: {', '.join(CREATABLE_TYPES)}"
        )
    if not validate_resource_name(name):
        raise ResourceError(
            f"Invalid resource name '{name}'. Use letters, numbers, dots, hyphens and underscores."
        )


def create_extension_resource(
    manager: LayerManager,
    resource_type: str,
    base: str,
    templates: TemplateManager | None = None,
) -> Path:
    """Write ``<base>-enhancement.md`` into the custom layer."""
    templates = templates or TemplateManager()
    base = base_name(base)
    target = _target_path(manager, resource_type, f"{base}-enhancement")
    if target.exists():
        raise ResourceError(f"Enhancement already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(templates.render_enhancement(base), encoding="utf-8")
    logger.info("Created enhancement %s", target)
    return target


def create_resource(
    manager: LayerManager,
    resource_type: str,
    name: str,
    import_from: Path | None = None,
    policy: ConflictPolicy = ConflictPolicy.ABORT,
    new_name: str | None = None,
    templates: TemplateManager | None = None,
) -> CreateResult:
    """Create a resource in the custom layer.

    Every layer is checked for a resource with the same base name before
    anything is written. On conflict, ``policy`` decides: ``abort`` raises
    ResourceConflictError, ``rename`` retries with ``new_name``, ``extend``
    writes an enhancement resource and ``override`` writes a custom copy
    that shadows the existing one.

    Raises:
        InvalidResourceTypeError: If the type cannot be created
        ResourceConflictError: On conflict with the abort policy, or when the
            renamed resource also conflicts
        ResourceError: If the name is unsafe or the import file is missing
    """
    templates = templates or TemplateManager()
    name = base_name(name)
    _check_creatable(resource_type, name)

    conflict = manager.find_conflict(resource_type, name)
    if conflict is not None:
        if policy is ConflictPolicy.ABORT:
            raise ResourceConflictError(conflict)
        if policy is ConflictPolicy.EXTEND:
            path = create_extension_resource(manager, resource_type, name, templates)
            return CreateResult(path, f"{name}-enhancement", policy, conflict)
        if policy is ConflictPolicy.RENAME:
            if not new_name:
                raise ResourceError("A new name is required to rename the resource")
            name = base_name(new_name)
            _check_creatable(resource_type, name)
            renamed_conflict = manager.find_conflict(resource_type, name)
            if renamed_conflict is not None:
                raise ResourceConflictError(renamed_conflict)
        elif policy is ConflictPolicy.OVERRIDE:
            logger.warning(
                "Overriding %s from the %s layer", conflict.winner.name, conflict.winner.source.value
            )

    if import_from is not None:
        import_from = Path(import_from)
        if not import_from.is_file():
            raise ResourceError(f"Import file not found: {import_from}")
        content = import_from.read_text(encoding="utf-8")
    else:
        content = templates.render(resource_type, name)

    target = _target_path(manager, resource_type, name)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    logger.info("Created resource %s", target)
    return CreateResult(target, name, policy, conflict, import_from)


def suggest_names(
    manager: LayerManager,
    resource_type: str,
    base: str,
    limit: int = 5,
) -> List[str]:
    """Suggest unused names derived from ``base``."""
    existing = {r.base_name.lower() for r in manager.list_layer_entries(resource_type)}
    sanitized = sanitize_name(base_name(base))
    if not sanitized:
        return []

    candidates = [sanitized]
    candidates.extend(f"{prefix}-{sanitized}" for prefix in NAME_PREFIXES)
    candidates.extend(f"{sanitized}-{suffix}" for suffix in NAME_SUFFIXES)
    candidates.extend(f"{sanitized}-{i}" for i in range(1, 6))

    suggestions: List[str] = []
    for candidate in candidates:
        if candidate not in existing and candidate not in suggestions:
            suggestions.append(candidate)
    return suggestions[:limit]
