"""Configuration management for LCAgents."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from pydantic import BaseModel, Field

from .models import DEFAULT_CORE_SYSTEM

logger = logging.getLogger(__name__)


class InstallConfig(BaseModel):
    """Configuration for installs."""
    core_system: str = Field(default=DEFAULT_CORE_SYSTEM, pattern="^[a-zA-Z0-9_-]+$", description="Core system installed by init")
    fallback_core_system: Optional[str] = Field(default=None, pattern="^[a-zA-Z0-9_-]+$", description="Core system used when the active one is missing")


class SearchConfig(BaseModel):
    """Configuration for resource search."""
    snippet_lines: int = Field(default=3, ge=1, le=20, description="Matching lines shown per content hit")
    max_results: int = Field(default=50, ge=1, le=500, description="Maximum results to show")


class ResourceConfig(BaseModel):
    """Configuration for resource files."""
    max_file_size: int = Field(default=1024*1024, ge=1024, description="Maximum resource file size in bytes")


class LoggingConfig(BaseModel):
    """Configuration for log output."""
    level: str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")


class LCAgentsConfig(BaseModel):
    """Main LCAgents configuration."""
    install: InstallConfig = Field(default_factory=InstallConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    resources: ResourceConfig = Field(default_factory=ResourceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Manages LCAgents configuration."""

    def __init__(self):
        self._config: Optional[LCAgentsConfig] = None
        self._config_paths = self._get_config_paths()

    @property
    def config_paths(self) -> list[Path]:
        return list(self._config_paths)

    def _get_config_paths(self) -> list[Path]:
        """Get potential configuration file paths in order of precedence."""
        paths = []

        # 1. Environment variable
        if env_config := os.getenv("LCAGENTS_CONFIG"):
            paths.append(Path(env_config))

        # 2. Current directory
        paths.append(Path.cwd() / "lcagents.yaml")
        paths.append(Path.cwd() / "lcagents.yml")
        paths.append(Path.cwd() / ".lcagents.yaml")
        paths.append(Path.cwd() / ".lcagents.yml")

        # 3. User config directory
        home = Path.home()
        paths.append(home / ".config" / "lcagents" / "config.yaml")
        paths.append(home / ".config" / "lcagents" / "config.yml")

        return paths

    def _load_config_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with path.open('r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    raise ValueError(f"Configuration file must contain a YAML object: {path}")
                return data
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in configuration file {path}: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ValueError(f"Cannot read configuration file {path}: {exc}") from exc

    def load_config(self) -> LCAgentsConfig:
        """Load configuration from files and environment."""
        if self._config is not None:
            return self._config

        config_data: Dict[str, Any] = {}

        for config_path in self._config_paths:
            if config_path.exists() and config_path.is_file():
                try:
                    config_data.update(self._load_config_file(config_path))
                    logger.debug("Loaded configuration from %s", config_path)
                    break  # Use first found config file
                except ValueError as exc:
                    logger.warning("%s", exc)
                    continue

        self._apply_env_overrides(config_data)

        try:
            self._config = LCAgentsConfig.model_validate(config_data)
        except Exception as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc

        return self._config

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration."""
        env_mappings = {
            'LCAGENTS_INSTALL_CORE_SYSTEM': ('install', 'core_system', str),
            'LCAGENTS_SEARCH_SNIPPET_LINES': ('search', 'snippet_lines', int),
            'LCAGENTS_SEARCH_MAX_RESULTS': ('search', 'max_results', int),
            'LCAGENTS_LOG_LEVEL': ('logging', 'level', lambda x: x.upper()),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            if value := os.getenv(env_var):
                try:
                    converted_value = converter(value)
                    if not isinstance(config_data.get(section), dict):
                        config_data[section] = {}
                    config_data[section][key] = converted_value
                except (ValueError, TypeError) as exc:
                    logger.warning("Invalid value for %s: %s (%s)", env_var, value, exc)

    def get_config(self) -> LCAgentsConfig:
        """Get the current configuration, loading if necessary."""
        return self.load_config()

    def reload_config(self) -> LCAgentsConfig:
        """Reload configuration from files."""
        self._config = None
        return self.load_config()

    def save_config(self, config: LCAgentsConfig, path: Optional[Path] = None) -> Path:
        """Save configuration to a file."""
        if path is None:
            config_dir = Path.home() / ".config" / "lcagents"
            config_dir.mkdir(parents=True, exist_ok=True)
            path = config_dir / "config.yaml"

        try:
            with path.open('w', encoding='utf-8') as f:
                yaml.dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=True)
        except (OSError, yaml.YAMLError) as exc:
            raise ValueError(f"Cannot save configuration to {path}: {exc}") from exc
        self._config = config
        return path


# Global configuration manager
_config_manager = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> LCAgentsConfig:
    """Get the current LCAgents configuration."""
    return get_config_manager().get_config()
