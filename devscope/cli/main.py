"""
Main CLI application using Typer.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import questionary
import typer
from rich.console import Console
from rich.live import Live
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from devscope.cli.formatters import (
    build_env_table,
    build_packages_table,
    build_path_table,
    build_services_table,
    build_tools_table,
    print_detection_summary,
    print_overview,
    print_system_info,
    print_tool_detail,
)
from devscope.core.config import AppConfig, load_config_file
from devscope.core.detector import SystemDetector
from devscope.core.models import EnvCategory, PackageManagerName, ServiceRecord
from devscope.modules.path_analyzer import count_duplicates
from devscope.modules.services import filter_dev_services
from devscope.storage.domain_store import ALL_MANAGERS, DomainStore
from devscope.storage.logger import setup_logging

app = typer.Typer(
    name="devscope",
    help="Developer tool inventory: runtimes, packages, services and environment",
    add_completion=False,
)

console = Console()


def _init_context(ctx: typer.Context):
    """
    Initialize shared objects: config, logger, system info and domain store.
    Uses optional config file (~/.devscope.yaml or ./.devscope.yaml) for defaults when CLI does not set values.
    """
    options = ctx.obj or {}
    file_cfg = load_config_file()

    overrides = dict(file_cfg)
    if options.get("output_dir") is not None:
        overrides["output_dir"] = options["output_dir"]
    if options.get("verbose"):
        overrides["verbose"] = True
    config = AppConfig(**overrides)

    system_info = SystemDetector().detect_system()
    logger = setup_logging(config.output_dir, config.verbose, system_info)
    store = DomainStore.from_config(config, system_info, logger)

    return config, logger, system_info, store


def _fail_on_error(error: Optional[str], what: str) -> None:
    if error:
        console.print(f"[bold red]✗ Could not load {what}:[/bold red] {error}")
        raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def _default(
    ctx: typer.Context,
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Directory for logs and saved snapshots",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
):
    """
    DevScope - see what is installed, running and configured on this machine.
    Run with no command for an overview of every domain.
    """
    if version:
        from devscope import __version__
        console.print(f"devscope {__version__}")
        raise typer.Exit(0)

    ctx.obj = {"output_dir": output_dir, "verbose": verbose}
    if ctx.invoked_subcommand is None:
        _run_overview(ctx)


@app.command()
def overview(ctx: typer.Context):
    """
    Refresh every domain and print a one-line summary of each.
    """
    _run_overview(ctx)


def _run_overview(ctx: typer.Context) -> None:
    _config, logger, system_info, store = _init_context(ctx)
    print_system_info(system_info, console)

    with console.status("[bold cyan]Scanning tools, packages, services and environment…[/bold cyan]"):
        asyncio.run(store.refresh_all())

    installed = sum(1 for t in store.tools.tools if t.is_installed)
    package_total = len(store.packages.all_packages())
    counts = {
        "tools": f"{installed}/{len(store.tools.tools)} installed",
        "packages": (
            f"{package_total} global packages "
            f"(npm {len(store.packages.npm)}, pip {len(store.packages.pip)}, "
            f"composer {len(store.packages.composer)})"
        ),
        "services": f"{len(store.services.services)} listening processes",
        "environment": (
            f"{len(store.environment.variables)} variables, "
            f"{len(store.environment.path_entries)} PATH entries "
            f"({count_duplicates(store.environment.path_entries)} duplicates)"
        ),
    }
    errors = store.errors()
    print_overview(counts, errors, console)

    if errors:
        logger.warning(f"Overview finished with errors: {errors}")
        raise typer.Exit(1)


@app.command()
def tools(
    ctx: typer.Context,
    output_json: bool = typer.Option(
        False,
        "--json",
        help="Print results as JSON",
    ),
    save: bool = typer.Option(
        False,
        "--save",
        help="Save a JSON snapshot to the output directory",
    ),
):
    """
    Detect every known runtime, package manager and developer tool.
    """
    config, _logger, _system_info, store = _init_context(ctx)

    summary = None
    if output_json:
        detected = asyncio.run(store.detector.detect_all())
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Detecting tools…", total=len(store.detector.probes))

            def _cb(completed: int, total: int) -> None:
                progress.update(task, completed=completed, total=total)

            detected, summary = asyncio.run(
                store.detector.detect_all_with_summary(progress_callback=_cb)
            )

    payload = [t.model_dump(mode="json") for t in detected]

    if output_json:
        console.print(json.dumps(payload, indent=2))
    else:
        console.print(build_tools_table(detected))
        print_detection_summary(summary, console)

    if save:
        snapshot = config.save_snapshot("tools", payload)
        console.print(f"[dim]Saved snapshot: {snapshot}[/dim]")


@app.command()
def tool(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Tool or command name (e.g. node, git, mytool)"),
    flag: Optional[str] = typer.Option(
        None,
        "--flag",
        "-f",
        help="Version flag for commands outside the known set (default: --version)",
    ),
):
    """
    Detect a single tool by name.
    """
    _config, _logger, _system_info, store = _init_context(ctx)
    record = asyncio.run(store.detect_one(name, version_flag=flag))
    print_tool_detail(record, console)
    if not record.is_installed:
        raise typer.Exit(1)


@app.command()
def packages(
    ctx: typer.Context,
    manager: str = typer.Argument(
        ALL_MANAGERS,
        help="Package manager: npm, pip, composer or all",
    ),
):
    """
    List globally installed packages.
    """
    valid = [m.value for m in PackageManagerName] + [ALL_MANAGERS]
    if manager not in valid:
        console.print(
            f"[red]Unknown package manager: {manager}[/red]\n"
            f"[dim]Valid options: {', '.join(valid)}[/dim]"
        )
        raise typer.Exit(1)

    _config, _logger, _system_info, store = _init_context(ctx)
    with console.status("[bold cyan]Listing packages…[/bold cyan]"):
        asyncio.run(store.load_packages(manager))

    managers = list(PackageManagerName) if manager == ALL_MANAGERS else [PackageManagerName(manager)]
    for m in managers:
        listed = store.packages.for_manager(m)
        if listed:
            console.print(build_packages_table(listed, title=f"{m.value} ({len(listed)})"))
        else:
            console.print(f"[dim]No {m.value} packages found[/dim]")

    _fail_on_error(store.packages.error, "packages")


@app.command()
def uninstall(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Package name"),
    manager: str = typer.Option(
        ...,
        "--manager",
        "-m",
        help="Package manager: npm, pip or composer",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
):
    """
    Uninstall a globally installed package.
    """
    if not yes and not questionary.confirm(
        f"Uninstall {name} with {manager}?",
        default=False,
    ).ask():
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(0)

    _config, _logger, _system_info, store = _init_context(ctx)
    with console.status(f"[bold cyan]Uninstalling {name}…[/bold cyan]"):
        removed = asyncio.run(store.uninstall_package(name, manager))

    if removed:
        console.print(f"[bold green]✓ Uninstalled {name}[/bold green]")
    else:
        console.print(f"[bold red]✗ Failed to uninstall {name}[/bold red]")
        raise typer.Exit(1)


def _visible_services(services: List[ServiceRecord], dev_only: bool) -> List[ServiceRecord]:
    return filter_dev_services(services) if dev_only else list(services)


async def _watch_services(store: DomainStore, dev_only: bool) -> None:
    poller = store.create_service_poller()
    with Live(build_services_table([]), console=console, refresh_per_second=4) as live:
        await poller.start()
        try:
            while True:
                live.update(
                    build_services_table(
                        _visible_services(store.services.services, dev_only),
                        error=store.services.error,
                    )
                )
                await asyncio.sleep(0.25)
        finally:
            poller.stop()


@app.command()
def services(
    ctx: typer.Context,
    dev_only: bool = typer.Option(
        False,
        "--dev-only",
        "-d",
        help="Only show services on common development ports",
    ),
    watch: bool = typer.Option(
        False,
        "--watch",
        "-w",
        help="Keep refreshing until Ctrl+C",
    ),
):
    """
    List processes listening on TCP ports.
    """
    _config, _logger, _system_info, store = _init_context(ctx)

    if watch:
        console.print("[dim]Watching services (Ctrl+C to stop)[/dim]")
        try:
            asyncio.run(_watch_services(store, dev_only))
        except KeyboardInterrupt:
            console.print("\n[dim]Stopped watching[/dim]")
        return

    with console.status("[bold cyan]Listing services…[/bold cyan]"):
        asyncio.run(store.load_services())
    _fail_on_error(store.services.error, "services")

    visible = _visible_services(store.services.services, dev_only)
    if not visible:
        console.print("[dim]No listening services found[/dim]")
        return
    console.print(build_services_table(visible))


@app.command()
def kill(
    ctx: typer.Context,
    pid: int = typer.Argument(..., help="Process ID to terminate"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
):
    """
    Forcefully terminate a process.
    """
    if not yes and not questionary.confirm(
        f"Kill process {pid}?",
        default=False,
    ).ask():
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(0)

    _config, _logger, _system_info, store = _init_context(ctx)
    if asyncio.run(store.kill_service(pid)):
        console.print(f"[bold green]✓ Killed process {pid}[/bold green]")
    else:
        console.print(f"[bold red]✗ Failed to kill process {pid}[/bold red]")
        raise typer.Exit(1)


@app.command()
def env(
    ctx: typer.Context,
    category: Optional[EnvCategory] = typer.Option(
        None,
        "--category",
        "-c",
        help="Only show one category",
    ),
    search: Optional[str] = typer.Option(
        None,
        "--search",
        "-s",
        help="Case-insensitive search in names and values",
    ),
):
    """
    List environment variables.
    """
    _config, _logger, _system_info, store = _init_context(ctx)
    asyncio.run(store.load_environment())
    _fail_on_error(store.environment.error, "environment")

    variables = store.environment.variables
    if category is not None:
        variables = store.scanner.filter_by_category(category)
    if search:
        matches = {v.key for v in store.scanner.search_variables(search)}
        variables = [v for v in variables if v.key in matches]

    console.print(build_env_table(variables))


@app.command()
def path(ctx: typer.Context):
    """
    Show PATH entries, flagging duplicates and missing directories.
    """
    _config, _logger, _system_info, store = _init_context(ctx)
    asyncio.run(store.load_environment())
    _fail_on_error(store.environment.error, "environment")

    analysis = store.path_analysis()
    missing = store.scanner.find_missing_path_entries()
    console.print(build_path_table(analysis, missing))

    duplicates = count_duplicates(store.environment.path_entries)
    console.print(
        f"\n[bold]{len(analysis)}[/bold] entries, "
        f"[yellow]{duplicates}[/yellow] duplicates, "
        f"[yellow]{len(missing)}[/yellow] missing"
    )
