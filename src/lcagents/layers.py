"""Layered resource resolution for an LCAgents install.

Resources live in four layers (low → high precedence):
  core (<root>/.lcagents/core/<core-system>) → org → custom → runtime

A resource defined in a higher layer shadows a same-named resource in a lower
one. Shadowed files stay on disk; they are only hidden from the resolved view.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .models import (
    DEFAULT_CORE_SYSTEM,
    LAYER_ORDER,
    RESOURCE_TYPES,
    Layer,
    Resource,
    ResourceConflict,
    base_name,
)
from .runtime import LCAGENTS_DIR, PRESERVED_CONFIG_FILES, RuntimeConfigManager, RuntimeConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerSpec:
    """A single layer root on disk."""

    layer: Layer
    path: Path


class LayerManager:
    """Resolves resources across the layers of one install root."""

    def __init__(
        self,
        root: Path,
        core_system: str = DEFAULT_CORE_SYSTEM,
        fallback_core_system: Optional[str] = None,
    ):
        self.root = Path(root)
        self.core_system = core_system
        self.fallback_core_system = fallback_core_system

    @classmethod
    def from_install(cls, root: Path, default_core_system: str = DEFAULT_CORE_SYSTEM) -> "LayerManager":
        """Build a manager using the core system recorded in the install's runtime config."""
        manager = RuntimeConfigManager(root)
        try:
            config = manager.load()
        except RuntimeConfigError as exc:
            logger.warning("Ignoring runtime config: %s", exc)
            config = None
        if config is None:
            return cls(root, core_system=default_core_system)
        return cls(
            root,
            core_system=config.core_system,
            fallback_core_system=config.fallback_core_system,
        )

    @property
    def lcagents_dir(self) -> Path:
        return self.root / LCAGENTS_DIR

    def is_installed(self) -> bool:
        return self.lcagents_dir.is_dir()

    def core_root(self) -> Path:
        core_dir = self.lcagents_dir / Layer.CORE.value
        active = core_dir / self.core_system
        if not active.is_dir() and self.fallback_core_system:
            fallback = core_dir / self.fallback_core_system
            if fallback.is_dir():
                logger.debug(
                    "Core system %s missing, using fallback %s",
                    self.core_system,
                    self.fallback_core_system,
                )
                return fallback
        return active

    def layer_root(self, layer: Layer) -> Path:
        if layer is Layer.CORE:
            return self.core_root()
        return self.lcagents_dir / layer.value

    def layer_specs(self) -> tuple[LayerSpec, ...]:
        """Return layer roots in low → high precedence order."""
        return tuple(LayerSpec(layer=layer, path=self.layer_root(layer)) for layer in LAYER_ORDER)

    def layer_of(self, path: Path) -> Optional[Layer]:
        """Return the layer that contains ``path``, if any."""
        target = Path(path)
        for spec in reversed(self.layer_specs()):
            if target.is_relative_to(spec.path):
                return spec.layer
        return None

    def _scan_layer(self, spec: LayerSpec, resource_type: str) -> List[Resource]:
        type_dir = spec.path / resource_type
        found: List[Resource] = []
        try:
            if not type_dir.is_dir():
                return []
            for entry in sorted(type_dir.iterdir(), key=lambda p: p.name):
                if entry.name.startswith(".") or not entry.is_file():
                    continue
                found.append(
                    Resource(type=resource_type, name=entry.name, source=spec.layer, path=entry)
                )
        except OSError as exc:
            logger.warning("Skipping %s layer for %s: %s", spec.layer.value, resource_type, exc)
            return []
        return found

    def list_layer_entries(self, resource_type: str) -> List[Resource]:
        """List every physical entry for a type, including shadowed ones."""
        if resource_type not in RESOURCE_TYPES or not self.is_installed():
            return []
        entries: List[Resource] = []
        for spec in self.layer_specs():
            entries.extend(self._scan_layer(spec, resource_type))
        return entries

    def list_resources(self, resource_type: str) -> List[Resource]:
        """List the resolved view of a type; the highest layer wins each name."""
        resolved: Dict[str, Resource] = {}
        for resource in self.list_layer_entries(resource_type):
            # Entries arrive in ascending precedence, so a later one always wins.
            resolved[resource.name] = resource
        return list(resolved.values())

    def _resolve(self, resource_type: str, name: str) -> Optional[Resource]:
        if resource_type not in RESOURCE_TYPES or not self.is_installed():
            return None
        if not name or name.startswith(".") or Path(name).name != name:
            return None
        for spec in reversed(self.layer_specs()):
            candidate = spec.path / resource_type / name
            if candidate.is_file():
                return Resource(type=resource_type, name=name, source=spec.layer, path=candidate)
        return None

    def get_resource(self, resource_type: str, name: str) -> Optional[Resource]:
        return self._resolve(resource_type, name)

    def get_resource_path(self, resource_type: str, name: str) -> Optional[Path]:
        resource = self._resolve(resource_type, name)
        return resource.path if resource else None

    def read_resource(self, resource_type: str, name: str) -> Optional[str]:
        resource = self._resolve(resource_type, name)
        if resource is None:
            return None
        return resource.path.read_text(encoding="utf-8")

    def resource_exists(self, resource_type: str, name: str) -> bool:
        return self.get_resource_path(resource_type, name) is not None

    def find_conflict(self, resource_type: str, name: str) -> Optional[ResourceConflict]:
        """Report an existing resource whose base name equals ``name``.

        The comparison ignores known extensions, so ``api`` collides with
        ``api.md`` or ``api.yaml`` in any layer, but never with ``api-v2.md``.
        """
        wanted = base_name(name).lower()
        matches = [
            entry
            for entry in self.list_layer_entries(resource_type)
            if entry.base_name.lower() == wanted
        ]
        if not matches:
            return None
        matches.sort(key=lambda entry: entry.source.precedence, reverse=True)
        return ResourceConflict(requested=name, winner=matches[0], shadowed=matches[1:])

    def ensure_layer_structure(self) -> List[Path]:
        """Create the layer roots. Existing directories are left untouched."""
        created: List[Path] = []
        for spec in self.layer_specs():
            if not spec.path.exists():
                spec.path.mkdir(parents=True)
                created.append(spec.path)
        return created

    def needs_migration(self) -> bool:
        core_dir = self.lcagents_dir / Layer.CORE.value
        return (
            self.is_installed()
            and not core_dir.exists()
            and (self.lcagents_dir / "agents").is_dir()
        )

    def migrate_from_flat_structure(self) -> bool:
        """Move a legacy flat install into ``core/<core-system>/``.

        Returns True when a migration was performed.
        """
        if not self.needs_migration():
            return False

        core_target = self.lcagents_dir / Layer.CORE.value / self.core_system
        core_target.mkdir(parents=True)
        layer_names = {layer.value for layer in LAYER_ORDER}

        for entry in sorted(self.lcagents_dir.iterdir(), key=lambda p: p.name):
            if entry.name in layer_names or entry.name in PRESERVED_CONFIG_FILES:
                continue
            logger.info("Migrating %s into %s", entry.name, core_target)
            shutil.move(str(entry), str(core_target / entry.name))

        self.ensure_layer_structure()
        return True
