from __future__ import annotations

from datetime import datetime
from pathlib import Path
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ConfigManager, LCAgentsConfig, get_config
from .core_system import CoreSystemError, CoreSystemManager
from .installer import InstallError, install, uninstall as run_uninstall
from .layers import LayerManager
from .models import LAYER_ORDER, RESOURCE_TYPES, Layer, PodInfo, Resource
from .resources import (
    ConflictPolicy,
    ResourceConflictError,
    ResourceError,
    close_matches,
    create_resource,
    find_resource,
    search_resources,
    suggest_names,
)
from .runtime import RuntimeConfigError, RuntimeConfigManager
from .validator import validate_resource_file, validate_resource_type

app = typer.Typer(help="LCAgents CLI: layered agent resources for your project")
res_app = typer.Typer(help="Resource management utilities for validation, creation, and management")
core_app = typer.Typer(help="Inspect bundled and installed core systems")
app.add_typer(res_app, name="res")
app.add_typer(core_app, name="core")

console = Console()
logger = logging.getLogger("lcagents")

LAYER_COLORS = {
    Layer.CORE: "blue",
    Layer.ORG: "yellow",
    Layer.CUSTOM: "magenta",
    Layer.RUNTIME: "cyan",
}

TYPE_ICONS = {
    "agents": "🤖",
    "checklists": "✅",
    "templates": "📄",
    "data": "📊",
    "tasks": "⚙️",
    "workflows": "🔄",
    "utils": "🛠️",
    "agent-teams": "👥",
}


def _configure_logging(verbose: bool) -> None:
    try:
        level = "DEBUG" if verbose else get_config().logging.level
    except ValueError as exc:
        console.print(f"[yellow]Warning: {exc}[/yellow]")
        level = "WARNING"
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    _configure_logging(verbose)


def _settings() -> LCAgentsConfig:
    try:
        return get_config()
    except ValueError as exc:
        logger.warning("%s; using defaults", exc)
        return LCAgentsConfig()


def _manager() -> LayerManager:
    return LayerManager.from_install(Path.cwd(), default_core_system=_settings().install.core_system)


def _badge(layer: Layer) -> str:
    color = LAYER_COLORS[layer]
    return f"[{color}]\\{layer.badge}[/{color}]"


def _format_resource(resource: Resource) -> str:
    icon = TYPE_ICONS.get(resource.type, "📄")
    return f"{icon} [cyan]{resource.name}[/cyan] {_badge(resource.source)}"


def _parse_layer(value: str | None) -> Layer | None:
    if value is None:
        return None
    try:
        return Layer(value.lower())
    except ValueError:
        console.print(f"[red]Unknown layer: {value}[/red]")
        console.print(f"[dim]Valid layers: {', '.join(layer.value for layer in LAYER_ORDER)}[/dim]")
        raise typer.Exit(code=1)


@app.command()
def init(
    core_system: str = typer.Option(None, "--core-system", help="Core system to install (defaults to config)"),
    fallback_core_system: str = typer.Option(None, "--fallback-core-system", help="Core system used when the active one is missing"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing installation"),
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Prompt for pod information"),
    pod_name: str = typer.Option("", "--pod-name", help="Pod name"),
    pod_id: str = typer.Option("", "--pod-id", help="Pod identifier"),
    pod_owner: str = typer.Option("", "--pod-owner", help="Pod owner"),
) -> None:
    """Initialize LCAgents in the current directory."""
    root = Path.cwd()
    chosen = core_system or _settings().install.core_system
    fallback = fallback_core_system or _settings().install.fallback_core_system

    if interactive:
        pod_name = typer.prompt("Pod name", default=pod_name or root.name)
        pod_id = typer.prompt("Pod ID", default=pod_id)
        pod_owner = typer.prompt("Pod owner", default=pod_owner)
    pod = PodInfo(name=pod_name, id=pod_id, owner=pod_owner)

    try:
        result = install(root, core_system=chosen, force=force, pod=pod, fallback_core_system=fallback)
    except InstallError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    except (CoreSystemError, RuntimeConfigError, OSError) as exc:
        console.print(f"[red]Failed to initialize LCAgents: {exc}[/red]")
        raise typer.Exit(code=1)

    if result.migrated:
        console.print("[green]Migrated legacy installation to the layered structure[/green]")
    console.print("[green]✓ LCAgents initialized successfully![/green]")
    console.print()
    console.print("[bold]Layered Architecture Created:[/bold]")
    manager = LayerManager(root, core_system=result.core_system)
    for spec in manager.layer_specs():
        console.print(f"  {_badge(spec.layer)} {spec.path.relative_to(root)}")
    console.print()
    console.print("[yellow]Next steps:[/yellow]")
    console.print("  1. List resources: lcagents res list")
    console.print("  2. Create a custom resource: lcagents res create tasks <name>")


@app.command()
def uninstall(
    force: bool = typer.Option(False, "--force", "-f", help="Force removal without confirmation"),
    keep_config: bool = typer.Option(False, "--keep-config", help="Keep configuration files"),
) -> None:
    """Remove LCAgents from the current directory."""
    root = Path.cwd()
    if not LayerManager(root).is_installed():
        console.print("[yellow]LCAgents is not installed in this directory[/yellow]")
        return

    if not force and not typer.confirm(
        "Are you sure you want to remove LCAgents from this directory?", default=False
    ):
        console.print("[dim]Uninstall cancelled[/dim]")
        return

    try:
        result = run_uninstall(root, keep_config=keep_config)
    except OSError as exc:
        console.print(f"[red]Failed to remove LCAgents: {exc}[/red]")
        raise typer.Exit(code=1)

    if keep_config:
        console.print("[green]✓ LCAgents removed (configuration preserved)[/green]")
        for name in result.kept:
            console.print(f"[dim]  kept .lcagents/{name}[/dim]")
    else:
        console.print("[green]✓ LCAgents completely removed[/green]")
    for path in result.removed_github_files:
        console.print(f"[dim]  removed {path.relative_to(root)}[/dim]")


@app.command()
def migrate() -> None:
    """Convert a legacy flat installation into the layered structure."""
    manager = _manager()
    if not manager.is_installed():
        console.print("[yellow]LCAgents is not installed in this directory[/yellow]")
        return
    try:
        migrated = manager.migrate_from_flat_structure()
    except OSError as exc:
        console.print(f"[red]Migration failed: {exc}[/red]")
        raise typer.Exit(code=1)
    if migrated:
        console.print(f"[green]✓ Migrated resources into core/{manager.core_system}[/green]")
    else:
        console.print("[dim]Nothing to migrate[/dim]")


@app.command()
def doctor() -> None:
    """Check the installation in the current directory."""
    root = Path.cwd()
    manager = _manager()
    if not manager.is_installed():
        console.print("[red]LCAgents not installed in this directory[/red]")
        raise typer.Exit(code=1)

    problems = 0
    if manager.needs_migration():
        console.print("[yellow]Legacy flat structure found; run: lcagents migrate[/yellow]")
        problems += 1

    try:
        runtime = RuntimeConfigManager(root).load()
    except RuntimeConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        runtime = None
        problems += 1
    if runtime is not None:
        console.print(f"[green]runtime config found[/green]: core system {runtime.core_system}")
    else:
        console.print("[yellow]runtime config missing; defaults in use[/yellow]")

    for spec in manager.layer_specs():
        status = "[green]✓[/green]" if spec.path.is_dir() else "[red]✗[/red]"
        console.print(f"  {status} {_badge(spec.layer)} {spec.path}")
        if not spec.path.is_dir():
            problems += 1

    if problems:
        raise typer.Exit(code=1)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    set_key: str = typer.Option(None, "--set", help="Set configuration key (format: section.key=value)"),
    reset: bool = typer.Option(False, "--reset", help="Reset to default configuration"),
) -> None:
    """Manage LCAgents configuration."""
    config_manager = ConfigManager()

    if reset:
        path = config_manager.save_config(LCAgentsConfig())
        console.print(f"[green]Configuration reset to defaults[/green] ({path})")
        return

    if set_key:
        if "=" not in set_key:
            console.print("[red]Invalid format. Use: section.key=value[/red]")
            raise typer.Exit(code=1)

        key_path, value = set_key.split("=", 1)
        if "." not in key_path:
            console.print("[red]Invalid key format. Use: section.key[/red]")
            raise typer.Exit(code=1)

        section, key = key_path.split(".", 1)
        try:
            config_dict = config_manager.get_config().model_dump(mode="json")
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1)

        if section not in config_dict:
            console.print(f"[red]Unknown section: {section}[/red]")
            raise typer.Exit(code=1)
        if key not in config_dict[section]:
            console.print(f"[red]Unknown key: {key_path}[/red]")
            raise typer.Exit(code=1)

        if value.lower() in ('true', 'false'):
            value = value.lower() == 'true'
        elif value.isdigit():
            value = int(value)
        config_dict[section][key] = value

        try:
            new_config = LCAgentsConfig.model_validate(config_dict)
            config_manager.save_config(new_config)
        except Exception as exc:
            console.print(f"[red]Invalid configuration: {exc}[/red]")
            raise typer.Exit(code=1)
        console.print(f"[green]Set {key_path} = {value}[/green]")
        return

    try:
        current_config = config_manager.get_config()
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    console.print("[bold]LCAgents Configuration[/bold]")
    console.print()
    for section, values in current_config.model_dump(mode="json").items():
        console.print(f"[bold cyan]{section.capitalize()}:[/bold cyan]")
        for key, value in values.items():
            console.print(f"  {key}: {value}")
        console.print()

    console.print("[dim]Configuration files checked (in order):[/dim]")
    for path in config_manager.config_paths:
        status = "✓" if path.exists() else "✗"
        console.print(f"  {status} {path}")


# Resource commands

@res_app.command("list")
def res_list(
    resource_type: str = typer.Argument(None, metavar="TYPE", help="Resource type to filter by"),
    layer: str = typer.Argument(None, help="Layer to filter by (core, org, custom, runtime)"),
) -> None:
    """Layer-aware resource listing."""
    manager = _manager()
    wanted_layer = _parse_layer(layer)
    types = [resource_type] if resource_type else list(RESOURCE_TYPES)

    console.print("[blue]📁 Resource Listing[/blue]")
    shown = 0
    for current in types:
        try:
            resources = manager.list_resources(current)
        except OSError as exc:
            console.print(f"[red]Error listing {current}: {exc}[/red]")
            continue
        if wanted_layer is not None:
            resources = [r for r in resources if r.source is wanted_layer]

        if not resources:
            if resource_type:
                suffix = f" in {wanted_layer.value} layer" if wanted_layer else ""
                console.print(f"[yellow]No {current} resources found{suffix}[/yellow]")
            continue

        shown += len(resources)
        console.print(f"\n[green]📂 {current.upper()} ({len(resources)} resources):[/green]")
        for current_layer in LAYER_ORDER:
            in_layer = [r for r in resources if r.source is current_layer]
            if not in_layer:
                continue
            console.print(f"{_badge(current_layer)} {current_layer.value} ({len(in_layer)} resources):")
            for resource in in_layer:
                console.print(f"   • [cyan]{resource.name}[/cyan]")

    if not shown and not resource_type:
        console.print("[yellow]No resources found. Run: lcagents init[/yellow]")
    console.print('\n[dim]💡 Use "lcagents res info <name>" for detailed information[/dim]')


@res_app.command("search")
def res_search(query: str = typer.Argument(..., help="Search query for resource names or content")) -> None:
    """Search resources by keywords or content across all types."""
    settings = _settings().search
    console.print(f'[blue]🔍 Searching resources for: "{query}"[/blue]')
    results = search_resources(_manager(), query, snippet_lines=settings.snippet_lines)

    if not results:
        console.print(f'[yellow]📭 No resources found matching "{query}"[/yellow]')
        console.print('[dim]Try different keywords or check "lcagents res list"[/dim]')
        return

    console.print(f"\n[green]📋 Search Results ({len(results)} found):[/green]")
    current_type = None
    for index, result in enumerate(results[: settings.max_results], start=1):
        if result.type != current_type:
            current_type = result.type
            count = sum(1 for r in results if r.type == current_type)
            console.print(f"\n{TYPE_ICONS.get(current_type, '📄')} {current_type.upper()} ({count} results):")
        console.print(f"   {index}. {_format_resource(result.resource)}", highlight=False)
        if result.snippet:
            console.print(result.snippet, style="dim", markup=False, highlight=False)
    if len(results) > settings.max_results:
        console.print(f"[dim]... {len(results) - settings.max_results} more[/dim]")
    console.print('\n[dim]💡 Use "lcagents res info <name>" for detailed information[/dim]')


@res_app.command("info")
def res_info(name: str = typer.Argument(..., help="Name of the resource to get info about")) -> None:
    """Show detailed information about a specific resource."""
    manager = _manager()
    found = find_resource(manager, name)
    if found is None:
        console.print(f"[red]❌ Resource not found: {name}[/red]")
        suggestions = close_matches(manager, name)
        if suggestions:
            console.print(f"[dim]Did you mean: {', '.join(suggestions)}?[/dim]")
        else:
            console.print('[dim]💡 Use "lcagents res list" to see available resources[/dim]')
        raise typer.Exit(code=1)

    resource_type, resource = found
    console.print(f"\n[green]{TYPE_ICONS.get(resource_type, '📄')} {resource.name}[/green]")
    console.print(f"[dim]Type: {resource_type}[/dim]")
    console.print(f"Layer: {_badge(resource.source)}")
    console.print(f"[dim]Path: {resource.path}[/dim]")

    conflict = manager.find_conflict(resource_type, resource.name)
    if conflict and conflict.shadowed:
        shadowed = ", ".join(r.source.value for r in conflict.shadowed)
        console.print(f"[yellow]Shadows: {shadowed}[/yellow]")

    try:
        stats = resource.path.stat()
        console.print(f"[dim]Size: {stats.st_size / 1024:.1f} KB[/dim]")
        console.print(f"[dim]Modified: {datetime.fromtimestamp(stats.st_mtime):%Y-%m-%d}[/dim]")
    except OSError as exc:
        logger.debug("Cannot stat %s: %s", resource.path, exc)

    try:
        content = manager.read_resource(resource_type, resource.name)
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[yellow]⚠️  Could not read resource content: {exc}[/yellow]")
        content = None
    if content is not None:
        console.print("\n[cyan]📝 Content:[/cyan]")
        console.print(f"[cyan]--- {resource_type}/{resource.name} ---[/cyan]")
        console.print(content, markup=False, highlight=False)

    console.print("\n[cyan]💡 Available Actions:[/cyan]")
    console.print(f"[dim]   lcagents res list {resource_type}[/dim]")
    if resource.source is not Layer.CORE:
        console.print(f"[dim]   # Edit: {resource.path}[/dim]")


def _ask_conflict_policy(name: str) -> tuple[ConflictPolicy, str | None]:
    console.print("\n[cyan]💡 What would you like to do?[/cyan]")
    console.print(f'  1) Create with different name (e.g., "enhanced-{name}")')
    console.print("  2) Extend existing resource (adds your content)")
    console.print("  3) Override existing resource (advanced)")
    choice = typer.prompt(">", default="", show_default=False).strip()
    if choice == "1":
        return ConflictPolicy.RENAME, typer.prompt("New name")
    if choice == "2":
        return ConflictPolicy.EXTEND, None
    if choice == "3":
        console.print("[yellow]⚠️  Override mode - proceed with caution[/yellow]")
        return ConflictPolicy.OVERRIDE, None
    console.print("[yellow]Invalid choice. Creation cancelled.[/yellow]")
    raise typer.Exit(code=1)


@res_app.command("create")
def res_create(
    resource_type: str = typer.Argument(..., metavar="TYPE", help="Resource type (agents, checklists, templates, data, tasks, workflows, utils)"),
    name: str = typer.Argument(..., help="Resource name"),
    import_file: Path = typer.Option(None, "--import", help="Import from existing file"),
    on_conflict: str = typer.Option(
        "ask",
        "--on-conflict",
        help="What to do if the name exists in any layer: ask, abort, rename, extend, override",
    ),
    new_name: str = typer.Option(None, "--new-name", help="Name used with --on-conflict rename"),
) -> None:
    """Create a new resource in the custom layer."""
    manager = _manager()
    console.print(f"[blue]📋 Creating {resource_type}: {name}[/blue]")

    if on_conflict == "ask":
        policy = ConflictPolicy.ABORT
    else:
        try:
            policy = ConflictPolicy(on_conflict)
        except ValueError:
            console.print(f"[red]Invalid --on-conflict value: {on_conflict}[/red]")
            raise typer.Exit(code=1)

    try:
        try:
            result = create_resource(manager, resource_type, name, import_from=import_file, policy=policy, new_name=new_name)
        except ResourceConflictError as exc:
            winner = exc.conflict.winner
            console.print(f"[yellow]⚠️  Resource '{name}' already exists![/yellow]")
            console.print(f"[dim]📍 Found in: {winner.path.relative_to(manager.root)} {_badge(winner.source)}[/dim]")
            if on_conflict != "ask":
                raise typer.Exit(code=1)
            policy, new_name = _ask_conflict_policy(name)
            result = create_resource(manager, resource_type, name, import_from=import_file, policy=policy, new_name=new_name)
    except ResourceConflictError as exc:
        console.print(f"[red]❌ {exc}[/red]")
        raise typer.Exit(code=1)
    except (ResourceError, OSError) as exc:
        console.print(f"[red]❌ Error creating resource: {exc}[/red]")
        raise typer.Exit(code=1)

    if result.imported_from:
        console.print(f"[green]📥 Imported content from: {result.imported_from}[/green]")
    label = "Enhancement" if result.policy is ConflictPolicy.EXTEND else "Resource"
    console.print(f"[green]✅ {label} created: {result.path.name}[/green]")
    console.print(f"[dim]📁 Location: {result.path}[/dim]")


@res_app.command("validate")
def res_validate(
    resource_type: str = typer.Argument(..., metavar="TYPE", help="Type of resource to validate"),
) -> None:
    """Validate resource uniqueness across all layers."""
    manager = _manager()
    result = validate_resource_type(manager, resource_type)
    if result.ok:
        issues = list(result.issues)
        max_size = _settings().resources.max_file_size
        try:
            resources = manager.list_resources(resource_type)
        except OSError as exc:
            console.print(f"[red]Error listing {resource_type}: {exc}[/red]")
            raise typer.Exit(code=1)
        for resource in resources:
            for issue in validate_resource_file(resource.path, max_size).issues:
                issue.message = f"{resource.name}: {issue.message}"
                issues.append(issue)
        result.issues = issues

    if not result.issues:
        console.print(f"[green]OK[/green] no naming conflicts in {resource_type}")
        return

    table = Table(title=f"{resource_type} validation")
    table.add_column("Level")
    table.add_column("Message")
    for issue in result.issues:
        table.add_row(issue.level, issue.message)
    console.print(table)
    if not result.ok:
        raise typer.Exit(code=1)


@res_app.command("suggest-name")
def res_suggest_name(
    resource_type: str = typer.Argument(..., metavar="TYPE", help="Type of resource"),
    base: str = typer.Argument(..., help="Base name for the resource"),
) -> None:
    """Suggest unique names for a new resource."""
    if resource_type not in RESOURCE_TYPES:
        console.print(f"[red]❌ Invalid resource type: {resource_type}[/red]")
        console.print(f"[dim]💡 Valid types: {', '.join(RESOURCE_TYPES)}[/dim]")
        raise typer.Exit(code=1)

    suggestions = suggest_names(_manager(), resource_type, base)
    if not suggestions:
        console.print("[yellow]⚠️  All suggested variations are taken[/yellow]")
        return
    console.print("[green]✅ Available resource names:[/green]")
    for index, suggestion in enumerate(suggestions, start=1):
        console.print(f"   {index}. [cyan]{suggestion}[/cyan]")


@res_app.command("get")
def res_get(
    resource_type: str = typer.Argument(..., metavar="TYPE", help="Resource type"),
    name: str = typer.Argument(..., help="Resource name (with extension)"),
) -> None:
    """Print the physical path of a resource and the layer it comes from."""
    manager = _manager()
    path = manager.get_resource_path(resource_type, name)
    if path is None:
        console.print(f"[red]❌ Resource not found: {resource_type}/{name}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Path: {path}", markup=False, highlight=False)
    console.print(f"Layer: {manager.layer_of(path).value}")


@res_app.command("exists")
def res_exists(
    resource_type: str = typer.Argument(..., metavar="TYPE", help="Resource type"),
    name: str = typer.Argument(..., help="Resource name (with extension)"),
) -> None:
    """Exit 0 when a resource exists in any layer, 1 otherwise."""
    if _manager().resource_exists(resource_type, name):
        console.print(f"[green]✅ Resource exists: {resource_type}/{name}[/green]")
        return
    console.print(f"[red]❌ Resource not found: {resource_type}/{name}[/red]")
    raise typer.Exit(code=1)


# Core system commands

@core_app.command("list")
def core_list() -> None:
    """List bundled core systems."""
    core_systems = CoreSystemManager()
    names = core_systems.available()
    if not names:
        console.print("[yellow]No core systems bundled[/yellow]")
        return
    installed = set(core_systems.installed(Path.cwd()))
    table = Table(title="Core Systems")
    table.add_column("Name", no_wrap=True)
    table.add_column("Version")
    table.add_column("Installed")
    table.add_column("Description")
    for name in names:
        try:
            meta = core_systems.metadata(name)
        except CoreSystemError as exc:
            logger.warning("%s", exc)
            table.add_row(name, "?", "yes" if name in installed else "", "")
            continue
        table.add_row(name, meta.version, "yes" if name in installed else "", meta.description)
    console.print(table)


@core_app.command("status")
def core_status() -> None:
    """Show the active core system of the current install."""
    manager = _manager()
    if not manager.is_installed():
        console.print("[yellow]LCAgents is not installed in this directory[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"Active core system: [cyan]{manager.core_system}[/cyan]")
    if manager.fallback_core_system:
        console.print(f"Fallback core system: [cyan]{manager.fallback_core_system}[/cyan]")
    core_root = manager.core_root()
    if not core_root.is_dir():
        console.print(f"[red]Core layer missing: {core_root}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[dim]Core layer: {core_root}[/dim]")
    failed = False
    for resource_type in RESOURCE_TYPES:
        type_dir = core_root / resource_type
        try:
            count = sum(1 for p in type_dir.iterdir() if p.is_file()) if type_dir.is_dir() else 0
        except OSError as exc:
            console.print(f"  [red]{resource_type}: cannot read {type_dir}: {exc}[/red]")
            failed = True
            continue
        console.print(f"  {resource_type}: {count}")
    if failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
