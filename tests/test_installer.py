"""Tests for install, uninstall and bundled core systems."""

import pytest
import yaml

from lcagents.core_system import CoreSystemError, CoreSystemManager, CoreSystemNotFoundError
from lcagents.installer import InstallError, install, uninstall
from lcagents.layers import LayerManager
from lcagents.models import Layer, PodInfo
from lcagents.runtime import RuntimeConfigError, RuntimeConfigManager


class TestCoreSystems:
    def test_bundled_core_system(self):
        manager = CoreSystemManager()

        assert "bmad-core" in manager.available()
        meta = manager.metadata("bmad-core")
        assert meta.name == "bmad-core"
        assert meta.version == "1.0.0"

    def test_unknown_core_system(self):
        with pytest.raises(CoreSystemNotFoundError):
            CoreSystemManager().bundle_path("does-not-exist")

    def test_invalid_core_system_name(self):
        with pytest.raises(CoreSystemError, match="Invalid core system name"):
            CoreSystemManager().bundle_path("../escape")

    def test_custom_bundle_dir(self, tmp_path, project):
        bundle = tmp_path / "bundles" / "mini-core" / "tasks"
        bundle.mkdir(parents=True)
        (bundle / "hello.md").write_text("# Hello\n")
        manager = CoreSystemManager(tmp_path / "bundles")

        target = manager.install("mini-core", project)

        assert (target / "tasks" / "hello.md").exists()
        assert manager.installed(project) == ["mini-core"]
        assert manager.metadata("mini-core").version == "0.0.0"
        with pytest.raises(CoreSystemError, match="already installed"):
            manager.install("mini-core", project)


class TestInstall:
    def test_creates_layers_and_core(self, project):
        result = install(project, pod=PodInfo(name="payments", id="p-1", owner="alex"))

        lcagents_dir = project / ".lcagents"
        assert result.core_path == lcagents_dir / "core" / "bmad-core"
        for layer in ("org", "custom", "runtime"):
            assert (lcagents_dir / layer).is_dir()
        assert (result.core_path / "tasks" / "review.md").exists()

        runtime = RuntimeConfigManager(project)
        assert runtime.load().core_system == "bmad-core"
        assert runtime.load_settings().pod.name == "payments"

    def test_installed_resources_resolve(self, installed):
        assert installed.get_resource("tasks", "review.md").source is Layer.CORE
        assert {r.name for r in installed.list_resources("agents")} >= {"dev.md", "qa.md"}

    def test_refuses_existing_install(self, installed):
        with pytest.raises(InstallError, match="already initialized"):
            install(installed.root)

    def test_force_replaces_install(self, installed):
        stale = installed.layer_root(Layer.CUSTOM) / "tasks" / "stale.md"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")

        install(installed.root, force=True)

        assert not stale.exists()
        assert installed.resource_exists("tasks", "review.md")

    def test_unknown_core_system_leaves_no_trace(self, project):
        with pytest.raises(CoreSystemNotFoundError):
            install(project, core_system="nope")
        assert not (project / ".lcagents").exists()

    def test_migrates_legacy_install(self, project):
        legacy = project / ".lcagents" / "agents"
        legacy.mkdir(parents=True)
        (legacy / "dev.md").write_text("# Legacy dev\n")

        result = install(project)

        assert result.migrated
        manager = LayerManager.from_install(project)
        assert manager.read_resource("agents", "dev.md") == "# Legacy dev\n"
        assert manager.get_resource("agents", "dev.md").source is Layer.CORE

    def test_fallback_recorded(self, project):
        install(project, fallback_core_system="bmad-core")

        assert LayerManager.from_install(project).fallback_core_system == "bmad-core"

    @pytest.mark.parametrize("fallback", ["bad name", "../escape", ""])
    def test_invalid_fallback_leaves_no_trace(self, project, fallback):
        with pytest.raises(InstallError, match="Invalid fallback core system name"):
            install(project, fallback_core_system=fallback)
        assert not (project / ".lcagents").exists()

        install(project)
        assert RuntimeConfigManager(project).load().fallback_core_system is None


class TestUninstall:
    def test_not_installed(self, project):
        assert not uninstall(project).removed

    def test_removes_everything(self, installed):
        root = installed.root
        workflow = root / ".github" / "workflows" / "lcagents-validation.yml"
        workflow.parent.mkdir(parents=True)
        workflow.write_text("name: validation\n")
        unrelated = root / ".github" / "workflows" / "ci.yml"
        unrelated.write_text("name: ci\n")

        result = uninstall(root)

        assert result.removed
        assert not (root / ".lcagents").exists()
        assert result.removed_github_files == [workflow]
        assert unrelated.exists()

    def test_keep_config(self, installed):
        root = installed.root

        result = uninstall(root, keep_config=True)

        assert result.kept == ["config.yaml", "user-settings.yaml"]
        assert sorted(p.name for p in (root / ".lcagents").iterdir()) == result.kept


class TestRuntimeConfig:
    def test_missing_files(self, project):
        runtime = RuntimeConfigManager(project)

        assert runtime.load() is None
        assert runtime.load_settings() is None
        assert runtime.active_core_system("bmad-core") == "bmad-core"

    def test_rejects_non_mapping(self, project):
        runtime = RuntimeConfigManager(project)
        runtime.config_path.parent.mkdir(parents=True)
        runtime.config_path.write_text("- a\n- b\n")

        with pytest.raises(RuntimeConfigError, match="mapping"):
            runtime.load()
        assert runtime.active_core_system("bmad-core") == "bmad-core"

    def test_rejects_invalid_core_system(self, project):
        runtime = RuntimeConfigManager(project)
        runtime.config_path.parent.mkdir(parents=True)
        runtime.config_path.write_text(yaml.safe_dump({"core_system": "../evil"}))

        with pytest.raises(RuntimeConfigError, match="Invalid runtime config"):
            runtime.load()
