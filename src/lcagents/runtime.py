"""Persisted per-install runtime configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import RuntimeConfig, UserSettings

logger = logging.getLogger(__name__)

LCAGENTS_DIR = ".lcagents"
RUNTIME_CONFIG_FILE = "config.yaml"
USER_SETTINGS_FILE = "user-settings.yaml"

# Files that survive `uninstall --keep-config`
PRESERVED_CONFIG_FILES: tuple[str, ...] = (RUNTIME_CONFIG_FILE, USER_SETTINGS_FILE)

MAX_CONFIG_SIZE = 256 * 1024


class RuntimeConfigError(Exception):
    """Raised when a persisted runtime config file cannot be used."""
    pass


class RuntimeConfigManager:
    """Reads and writes the config files kept at the root of an install."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.lcagents_dir = self.root / LCAGENTS_DIR

    @property
    def config_path(self) -> Path:
        return self.lcagents_dir / RUNTIME_CONFIG_FILE

    @property
    def settings_path(self) -> Path:
        return self.lcagents_dir / USER_SETTINGS_FILE

    def _read_yaml(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.is_file():
            return None

        try:
            size = path.stat().st_size
        except OSError as exc:
            raise RuntimeConfigError(f"Cannot stat {path}: {exc}") from exc
        if size > MAX_CONFIG_SIZE:
            raise RuntimeConfigError(
                f"{path.name} too large: {size} bytes (max {MAX_CONFIG_SIZE})"
            )

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise RuntimeConfigError(f"Invalid YAML in {path}: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise RuntimeConfigError(f"Cannot read {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise RuntimeConfigError(f"{path.name} must contain a YAML mapping")
        return data

    def _write_yaml(self, path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as exc:
            raise RuntimeConfigError(f"Cannot write {path}: {exc}") from exc
        logger.debug("Wrote %s", path)

    def load(self) -> Optional[RuntimeConfig]:
        data = self._read_yaml(self.config_path)
        if data is None:
            return None
        try:
            return RuntimeConfig.model_validate(data)
        except Exception as exc:
            raise RuntimeConfigError(f"Invalid runtime config {self.config_path}: {exc}") from exc

    def save(self, config: RuntimeConfig) -> Path:
        self._write_yaml(self.config_path, config.model_dump(mode="json"))
        return self.config_path

    def load_settings(self) -> Optional[UserSettings]:
        data = self._read_yaml(self.settings_path)
        if data is None:
            return None
        try:
            return UserSettings.model_validate(data)
        except Exception as exc:
            raise RuntimeConfigError(f"Invalid user settings {self.settings_path}: {exc}") from exc

    def save_settings(self, settings: UserSettings) -> Path:
        self._write_yaml(self.settings_path, settings.model_dump(mode="json"))
        return self.settings_path

    def active_core_system(self, default: str) -> str:
        """Return the configured core system, or ``default`` when unset or unreadable."""
        try:
            config = self.load()
        except RuntimeConfigError as exc:
            logger.warning("Ignoring runtime config: %s", exc)
            return default
        return config.core_system if config else default
