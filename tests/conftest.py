"""Shared fixtures for LCAgents tests."""

from pathlib import Path

import pytest

import lcagents.config as config_module
from lcagents.installer import install
from lcagents.layers import LayerManager


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config and LCAGENTS_* variables out of every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "LCAGENTS_CONFIG",
        "LCAGENTS_INSTALL_CORE_SYSTEM",
        "LCAGENTS_SEARCH_SNIPPET_LINES",
        "LCAGENTS_SEARCH_MAX_RESULTS",
        "LCAGENTS_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config_module, "_config_manager", None)
    return home


@pytest.fixture
def project(tmp_path):
    """An empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def manager(project):
    """A manager over a bare layered tree with no bundled content."""
    manager = LayerManager(project)
    manager.ensure_layer_structure()
    return manager


@pytest.fixture
def installed(project):
    """A project with the bundled core system installed."""
    install(project)
    return LayerManager.from_install(project)


def write_resource(manager: LayerManager, layer, resource_type: str, name: str, content: str = "") -> Path:
    path = manager.layer_root(layer) / resource_type / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content or f"# {name}\n", encoding="utf-8")
    return path
