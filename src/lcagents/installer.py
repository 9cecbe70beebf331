"""Install and uninstall an LCAgents tree in a project directory."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .core_system import CoreSystemManager
from .layers import LayerManager
from .models import DEFAULT_CORE_SYSTEM, PodInfo, RuntimeConfig, UserSettings
from .runtime import LCAGENTS_DIR, PRESERVED_CONFIG_FILES, RuntimeConfigManager
from .security import validate_identifier

logger = logging.getLogger(__name__)

GITHUB_WORKFLOWS = ("lcagents-validation.yml", "lcagents-docs.yml")
GITHUB_ISSUE_TEMPLATES = ("agent-request.md", "bug-report.md")


class InstallError(Exception):
    """Raised when an install cannot proceed."""
    pass


@dataclass
class InstallResult:
    root: Path
    core_system: str
    core_path: Path
    created_layers: List[Path] = field(default_factory=list)
    migrated: bool = False


@dataclass
class UninstallResult:
    removed: bool
    kept: List[str] = field(default_factory=list)
    removed_github_files: List[Path] = field(default_factory=list)


def install(
    root: Path,
    core_system: str = DEFAULT_CORE_SYSTEM,
    force: bool = False,
    pod: Optional[PodInfo] = None,
    fallback_core_system: Optional[str] = None,
    core_systems: CoreSystemManager | None = None,
) -> InstallResult:
    """Create the layered tree and install a core system.

    An existing install is refused unless ``force`` is set, in which case it is
    removed first. A legacy flat install is migrated in place instead.
    """
    root = Path(root)
    core_systems = core_systems or CoreSystemManager()
    lcagents_dir = root / LCAGENTS_DIR
    # Fail before touching disk when the bundle or fallback name is unusable
    core_systems.bundle_path(core_system)
    if fallback_core_system is not None and not validate_identifier(fallback_core_system):
        raise InstallError(f"Invalid fallback core system name: {fallback_core_system}")

    manager = LayerManager(root, core_system=core_system, fallback_core_system=fallback_core_system)
    if manager.needs_migration() and not force:
        manager.migrate_from_flat_structure()
        _write_runtime_files(root, core_system, fallback_core_system, pod)
        return InstallResult(
            root=root,
            core_system=core_system,
            core_path=manager.core_root(),
            migrated=True,
        )

    if lcagents_dir.exists():
        if not force:
            raise InstallError(
                f"LCAgents already initialized in {root}. Use --force to overwrite the existing installation."
            )
        logger.info("Removing existing installation at %s", lcagents_dir)
        shutil.rmtree(lcagents_dir)

    core_path = core_systems.install(core_system, root)
    created = manager.ensure_layer_structure()
    _write_runtime_files(root, core_system, fallback_core_system, pod)
    return InstallResult(root=root, core_system=core_system, core_path=core_path, created_layers=created)


def _write_runtime_files(
    root: Path,
    core_system: str,
    fallback_core_system: Optional[str],
    pod: Optional[PodInfo],
) -> None:
    runtime = RuntimeConfigManager(root)
    runtime.save(
        RuntimeConfig(
            core_system=core_system,
            fallback_core_system=fallback_core_system,
            installed_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
    )
    settings = runtime.load_settings() or UserSettings()
    if pod is not None:
        settings.pod = pod
    runtime.save_settings(settings)


def uninstall(root: Path, keep_config: bool = False) -> UninstallResult:
    """Remove the LCAgents tree and the GitHub files it created.

    With ``keep_config`` only ``config.yaml`` and ``user-settings.yaml`` remain.
    """
    root = Path(root)
    lcagents_dir = root / LCAGENTS_DIR
    if not lcagents_dir.exists():
        return UninstallResult(removed=False)

    kept: List[str] = []
    if keep_config:
        for item in sorted(lcagents_dir.iterdir(), key=lambda p: p.name):
            if item.name in PRESERVED_CONFIG_FILES:
                kept.append(item.name)
                continue
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item)
            else:
                item.unlink()
    else:
        shutil.rmtree(lcagents_dir)

    return UninstallResult(
        removed=True,
        kept=kept,
        removed_github_files=_remove_github_files(root),
    )


def _remove_github_files(root: Path) -> List[Path]:
    removed: List[Path] = []
    targets = [root / ".github" / "workflows" / name for name in GITHUB_WORKFLOWS]
    targets += [root / ".github" / "ISSUE_TEMPLATE" / name for name in GITHUB_ISSUE_TEMPLATES]
    for path in targets:
        if path.is_file():
            path.unlink()
            removed.append(path)
    return removed
