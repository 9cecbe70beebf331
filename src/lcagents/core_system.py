"""Bundled core systems and their installation into the core layer."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List

import yaml

from .models import CoreSystemMeta, Layer
from .runtime import LCAGENTS_DIR
from .security import validate_identifier

logger = logging.getLogger(__name__)

MANIFEST_FILE = "core-system.yaml"


class CoreSystemError(Exception):
    """Base exception for core system errors."""
    pass


class CoreSystemNotFoundError(CoreSystemError):
    """Raised when a named core system is not bundled."""
    pass


class CoreSystemManager:
    """Lists bundled core systems and copies one into an install."""

    def __init__(self, bundles_dir: Path | None = None):
        if bundles_dir is None:
            self.bundles_dir = Path(__file__).parent / "data" / "core-systems"
        else:
            self.bundles_dir = bundles_dir

    def available(self) -> List[str]:
        if not self.bundles_dir.is_dir():
            return []
        return sorted(
            d.name for d in self.bundles_dir.iterdir()
            if d.is_dir() and not d.name.startswith('.')
        )

    def bundle_path(self, name: str) -> Path:
        if not validate_identifier(name):
            raise CoreSystemError(f"Invalid core system name: {name}")
        path = self.bundles_dir / name
        if not path.is_dir():
            raise CoreSystemNotFoundError(
                f"Core system '{name}' not found. Available: {self.available()}"
            )
        return path

    def metadata(self, name: str) -> CoreSystemMeta:
        manifest = self.bundle_path(name) / MANIFEST_FILE
        if not manifest.is_file():
            return CoreSystemMeta(name=name)
        try:
            data = yaml.safe_load(manifest.read_text(encoding="utf-8")) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise CoreSystemError(f"Cannot read {manifest}: {exc}") from exc
        if not isinstance(data, dict):
            raise CoreSystemError(f"{manifest} must contain a YAML mapping")
        data.setdefault("name", name)
        try:
            return CoreSystemMeta.model_validate(data)
        except Exception as exc:
            raise CoreSystemError(f"Invalid core system manifest {manifest}: {exc}") from exc

    def installed(self, root: Path) -> List[str]:
        core_dir = Path(root) / LCAGENTS_DIR / Layer.CORE.value
        if not core_dir.is_dir():
            return []
        return sorted(d.name for d in core_dir.iterdir() if d.is_dir())

    def install(self, name: str, root: Path, force: bool = False) -> Path:
        """Copy a bundled core system to ``<root>/.lcagents/core/<name>``."""
        source = self.bundle_path(name)
        target = Path(root) / LCAGENTS_DIR / Layer.CORE.value / name
        if target.exists():
            if not force:
                raise CoreSystemError(f"Core system '{name}' is already installed at {target}")
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, target)
        logger.info("Installed core system %s into %s", name, target)
        return target
