"""CLI tests using typer's test runner."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import write_resource
from lcagents.cli import app
from lcagents.layers import LayerManager
from lcagents.models import Layer


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


@pytest.fixture
def cwd(project, monkeypatch):
    monkeypatch.chdir(project)
    return project


@pytest.fixture
def initialized(runner, cwd):
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.stdout
    return LayerManager.from_install(cwd)


class TestInit:
    def test_init(self, runner, cwd):
        result = runner.invoke(app, ["init", "--pod-name", "payments"])

        assert result.exit_code == 0
        assert "LCAgents initialized successfully" in result.stdout
        assert "Layered Architecture Created" in result.stdout
        assert (cwd / ".lcagents" / "core" / "bmad-core" / "tasks" / "review.md").exists()
        assert "payments" in (cwd / ".lcagents" / "user-settings.yaml").read_text()

    def test_init_twice(self, runner, initialized):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
        assert "already initialized" in result.stdout

    def test_init_force(self, runner, initialized):
        result = runner.invoke(app, ["init", "--force"])

        assert result.exit_code == 0

    def test_unknown_core_system(self, runner, cwd):
        result = runner.invoke(app, ["init", "--core-system", "nope"])

        assert result.exit_code == 1
        assert not (cwd / ".lcagents").exists()

    def test_invalid_fallback_core_system(self, runner, cwd):
        result = runner.invoke(app, ["init", "--fallback-core-system", "bad name"])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Invalid fallback core system name" in result.stdout
        assert not (cwd / ".lcagents").exists()

        assert runner.invoke(app, ["init"]).exit_code == 0

    def test_interactive_prompts_for_pod(self, runner, cwd):
        result = runner.invoke(app, ["init", "--interactive"], input="payments\np-1\nalex\n")

        assert result.exit_code == 0
        settings = (cwd / ".lcagents" / "user-settings.yaml").read_text()
        assert "p-1" in settings
        assert "alex" in settings


class TestUninstall:
    def test_force(self, runner, initialized, cwd):
        result = runner.invoke(app, ["uninstall", "--force"])

        assert result.exit_code == 0
        assert "completely removed" in result.stdout
        assert not (cwd / ".lcagents").exists()

    def test_cancelled(self, runner, initialized, cwd):
        result = runner.invoke(app, ["uninstall"], input="n\n")

        assert result.exit_code == 0
        assert "cancelled" in result.stdout
        assert (cwd / ".lcagents").exists()

    def test_keep_config(self, runner, initialized, cwd):
        result = runner.invoke(app, ["uninstall", "--force", "--keep-config"])

        assert result.exit_code == 0
        assert (cwd / ".lcagents" / "config.yaml").exists()
        assert not (cwd / ".lcagents" / "core").exists()

    def test_not_installed(self, runner, cwd):
        result = runner.invoke(app, ["uninstall", "--force"])

        assert result.exit_code == 0
        assert "not installed" in result.stdout


class TestMigrateAndDoctor:
    def test_migrate_legacy(self, runner, cwd):
        legacy = cwd / ".lcagents" / "agents"
        legacy.mkdir(parents=True)
        (legacy / "dev.md").write_text("# Dev\n")

        result = runner.invoke(app, ["migrate"])

        assert result.exit_code == 0
        assert "Migrated" in result.stdout
        assert (cwd / ".lcagents" / "core" / "bmad-core" / "agents" / "dev.md").exists()

        result = runner.invoke(app, ["migrate"])
        assert "Nothing to migrate" in result.stdout

    def test_doctor_healthy(self, runner, initialized):
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0

    def test_doctor_not_installed(self, runner, cwd):
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 1


class TestResourceCommands:
    def test_list_shows_layers(self, runner, initialized):
        write_resource(initialized, Layer.ORG, "tasks", "deploy.md")

        result = runner.invoke(app, ["res", "list", "tasks"])

        assert result.exit_code == 0
        assert "review.md" in result.stdout
        assert "deploy.md" in result.stdout
        assert "[CORE]" in result.stdout
        assert "[ORG]" in result.stdout

    def test_list_filtered_by_layer(self, runner, initialized):
        write_resource(initialized, Layer.ORG, "tasks", "deploy.md")

        result = runner.invoke(app, ["res", "list", "tasks", "org"])

        assert "deploy.md" in result.stdout
        assert "review.md" not in result.stdout

    def test_list_unknown_layer(self, runner, initialized):
        result = runner.invoke(app, ["res", "list", "tasks", "team"])

        assert result.exit_code == 1
        assert "Unknown layer" in result.stdout

    def test_list_all_includes_agent_teams(self, runner, initialized):
        result = runner.invoke(app, ["res", "list"])

        assert result.exit_code == 0
        assert "AGENT-TEAMS" in result.stdout
        assert "team-all.yaml" in result.stdout

    def test_list_without_install(self, runner, cwd):
        result = runner.invoke(app, ["res", "list"])

        assert result.exit_code == 0
        assert "No resources found" in result.stdout

    def test_get_and_exists(self, runner, initialized):
        write_resource(initialized, Layer.CUSTOM, "tasks", "review.md")

        result = runner.invoke(app, ["res", "get", "tasks", "review.md"])
        assert result.exit_code == 0
        assert "Layer: custom" in result.stdout

        assert runner.invoke(app, ["res", "exists", "tasks", "review.md"]).exit_code == 0
        assert runner.invoke(app, ["res", "exists", "tasks", "nope.md"]).exit_code == 1
        assert runner.invoke(app, ["res", "get", "tasks", "nope.md"]).exit_code == 1

    def test_search(self, runner, initialized):
        result = runner.invoke(app, ["res", "search", "review"])

        assert result.exit_code == 0
        assert "review.md" in result.stdout

    def test_search_no_results(self, runner, initialized):
        result = runner.invoke(app, ["res", "search", "zzzz-nothing"])

        assert result.exit_code == 0
        assert "No resources found" in result.stdout

    def test_info(self, runner, initialized):
        result = runner.invoke(app, ["res", "info", "review"])

        assert result.exit_code == 0
        assert "Type: tasks" in result.stdout
        assert "[CORE]" in result.stdout

    def test_info_missing_suggests(self, runner, initialized):
        result = runner.invoke(app, ["res", "info", "reveiw.md"])

        assert result.exit_code == 1
        assert "Did you mean" in result.stdout
        assert "review.md" in result.stdout

    def test_validate(self, runner, initialized):
        write_resource(initialized, Layer.CUSTOM, "tasks", "review.md")

        result = runner.invoke(app, ["res", "validate", "tasks"])

        assert result.exit_code == 0
        assert "precedence" in result.stdout

    def test_validate_unreadable_type(self, runner, initialized, monkeypatch):
        def list_resources(self, resource_type):
            raise PermissionError(13, "Permission denied", resource_type)

        monkeypatch.setattr(LayerManager, "list_resources", list_resources)

        result = runner.invoke(app, ["res", "validate", "tasks"])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Error listing tasks" in result.stdout

    def test_validate_invalid_type(self, runner, initialized):
        result = runner.invoke(app, ["res", "validate", "widgets"])

        assert result.exit_code == 1

    def test_suggest_name(self, runner, initialized):
        result = runner.invoke(app, ["res", "suggest-name", "tasks", "review"])

        assert result.exit_code == 0
        assert "custom-review" in result.stdout

    def test_suggest_name_invalid_type(self, runner, initialized):
        result = runner.invoke(app, ["res", "suggest-name", "widgets", "x"])

        assert result.exit_code == 1


class TestCreateCommand:
    def test_create(self, runner, initialized):
        result = runner.invoke(app, ["res", "create", "tasks", "ship-it"])

        assert result.exit_code == 0
        assert "Resource created: ship-it.md" in result.stdout
        assert initialized.get_resource("tasks", "ship-it.md").source is Layer.CUSTOM

    def test_conflict_aborts_before_write(self, runner, initialized):
        write_resource(initialized, Layer.ORG, "agents", "security-engineer.md")

        result = runner.invoke(app, ["res", "create", "agents", "security-engineer", "--on-conflict", "abort"])

        assert result.exit_code == 1
        assert "already exists" in result.stdout
        assert not (initialized.layer_root(Layer.CUSTOM) / "agents").exists()

    def test_conflict_prompt_extend(self, runner, initialized):
        write_resource(initialized, Layer.ORG, "agents", "security-engineer.md")

        result = runner.invoke(app, ["res", "create", "agents", "security-engineer"], input="2\n")

        assert result.exit_code == 0
        assert "Enhancement created" in result.stdout
        assert initialized.resource_exists("agents", "security-engineer-enhancement.md")

    def test_conflict_prompt_rename(self, runner, initialized):
        write_resource(initialized, Layer.ORG, "agents", "security-engineer.md")

        result = runner.invoke(
            app, ["res", "create", "agents", "security-engineer"], input="1\nappsec-engineer\n"
        )

        assert result.exit_code == 0
        assert initialized.resource_exists("agents", "appsec-engineer.md")

    def test_conflict_prompt_invalid_choice(self, runner, initialized):
        write_resource(initialized, Layer.ORG, "agents", "security-engineer.md")

        result = runner.invoke(app, ["res", "create", "agents", "security-engineer"], input="9\n")

        assert result.exit_code == 1
        assert not (initialized.layer_root(Layer.CUSTOM) / "agents").exists()

    def test_override_option(self, runner, initialized):
        result = runner.invoke(app, ["res", "create", "tasks", "review", "--on-conflict", "override"])

        assert result.exit_code == 0
        assert initialized.get_resource("tasks", "review.md").source is Layer.CUSTOM

    def test_invalid_policy(self, runner, initialized):
        result = runner.invoke(app, ["res", "create", "tasks", "x", "--on-conflict", "merge"])

        assert result.exit_code == 1

    def test_import(self, runner, initialized, tmp_path):
        source = tmp_path / "imported.md"
        source.write_text("# Imported\n")

        result = runner.invoke(app, ["res", "create", "data", "imported", "--import", str(source)])

        assert result.exit_code == 0
        assert initialized.read_resource("data", "imported.md") == "# Imported\n"


class TestCoreCommands:
    def test_core_list(self, runner, initialized):
        result = runner.invoke(app, ["core", "list"])

        assert result.exit_code == 0
        assert "bmad-core" in result.stdout

    def test_core_status(self, runner, initialized):
        result = runner.invoke(app, ["core", "status"])

        assert result.exit_code == 0
        assert "Active core system: bmad-core" in result.stdout

    def test_core_status_not_installed(self, runner, cwd):
        assert runner.invoke(app, ["core", "status"]).exit_code == 1

    def test_core_status_unreadable_type(self, runner, initialized, monkeypatch):
        blocked = initialized.core_root() / "tasks"
        real_iterdir = Path.iterdir

        def iterdir(self):
            if self == blocked:
                raise PermissionError(13, "Permission denied", str(self))
            return real_iterdir(self)

        monkeypatch.setattr(Path, "iterdir", iterdir)

        result = runner.invoke(app, ["core", "status"])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "agents: 3" in result.stdout
        assert "cannot read" in result.stdout


class TestConfigCommand:
    def test_show(self, runner, cwd):
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "LCAgents Configuration" in result.stdout
        assert "core_system: bmad-core" in result.stdout

    def test_set(self, runner, cwd, isolated_config):
        result = runner.invoke(app, ["config", "--set", "search.max_results=10"])

        assert result.exit_code == 0
        assert "max_results: 10" in (isolated_config / ".config" / "lcagents" / "config.yaml").read_text()

    @pytest.mark.parametrize("value", ["search.max_results", "nosection=1", "bogus.key=1", "search.bogus=1", "install.fallback_core_system=bad name"])
    def test_set_invalid(self, runner, cwd, value):
        result = runner.invoke(app, ["config", "--set", value])

        assert result.exit_code == 1

    def test_reset(self, runner, cwd, isolated_config):
        result = runner.invoke(app, ["config", "--reset"])

        assert result.exit_code == 0
        assert (isolated_config / ".config" / "lcagents" / "config.yaml").exists()
