"""
Rich formatting utilities for CLI output.
"""

from typing import Dict, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from devscope.core.detector import SystemInfo
from devscope.core.models import (
    DetectionSummary,
    EnvVarRecord,
    PackageRecord,
    PathEntryAnalysis,
    ServiceRecord,
    ToolRecord,
)


def print_system_info(system_info: SystemInfo, console: Console) -> None:
    """Print detected system information."""
    table = Table(title="System Information", show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Operating System", system_info.os_type)
    table.add_row("Platform", system_info.platform)
    table.add_row("Python Version", system_info.python_version)
    table.add_row("Hostname", system_info.hostname)

    console.print()
    console.print(table)
    console.print()


def _status_icon_and_color(installed: bool) -> tuple:
    if installed:
        return "✓", "green"
    return "✗", "red"


def build_tools_table(tools: Sequence[ToolRecord]) -> Table:
    table = Table(title="Development Tools", show_header=True, padding=(0, 1))
    table.add_column("", width=1)
    table.add_column("Tool", style="cyan")
    table.add_column("Category", style="dim")
    table.add_column("Version", style="white")
    table.add_column("Installed via", style="white")
    table.add_column("Path / Reason", style="dim", overflow="fold")

    for tool in tools:
        icon, color = _status_icon_and_color(tool.is_installed)
        if tool.is_installed:
            detail = tool.path or ""
            method = tool.install_method.value if tool.install_method else ""
        else:
            detail = tool.error_reason or ""
            method = ""
        table.add_row(
            f"[{color}]{icon}[/{color}]",
            tool.display_name,
            tool.category.value,
            tool.version or "—",
            method,
            detail,
        )
    return table


def print_tool_detail(tool: ToolRecord, console: Console) -> None:
    """Show a single detection result as a panel."""
    icon, color = _status_icon_and_color(tool.is_installed)

    content = [f"[bold]Name:[/bold] {tool.name}"]
    content.append(f"[bold]Category:[/bold] {tool.category.value}")
    if tool.is_installed:
        content.append(f"[bold]Version:[/bold] {tool.version or 'unknown'}")
        content.append(f"[bold]Path:[/bold] {tool.path or 'unknown'}")
        if tool.install_method:
            content.append(f"[bold]Installed via:[/bold] {tool.install_method.value}")
    else:
        content.append(f"[bold]Reason:[/bold] {tool.error_reason or 'unknown'}")

    console.print()
    console.print(
        Panel(
            "\n".join(content),
            title=f"{icon} {tool.display_name}",
            border_style=color,
            expand=False,
        )
    )


def print_detection_summary(summary: DetectionSummary, console: Console) -> None:
    console.print(
        f"\n[bold]{summary.success_count}/{summary.total_tools}[/bold] tools found "
        f"[dim]in {summary.total_time:.2f}s[/dim]"
    )


def build_packages_table(packages: Sequence[PackageRecord], title: str = "Packages") -> Table:
    table = Table(title=title, show_header=True, padding=(0, 1))
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="white")
    table.add_column("Manager", style="dim")
    table.add_column("Description", style="dim", overflow="fold")

    for package in packages:
        table.add_row(
            package.name,
            package.version,
            package.manager.value,
            package.description or "",
        )
    return table


def _format_number(value: Optional[float], suffix: str = "") -> str:
    if value is None:
        return "—"
    return f"{value:.1f}{suffix}"


def build_services_table(
    services: Sequence[ServiceRecord],
    error: Optional[str] = None,
) -> Table:
    """Table of listening processes, with the last polling error as caption."""
    table = Table(title="Running Services", show_header=True, padding=(0, 1))
    table.add_column("PID", style="cyan", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Port", style="green", justify="right")
    table.add_column("CPU %", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("Command", style="dim", overflow="fold")

    for service in sorted(services, key=lambda s: (s.port is None, s.port or 0)):
        table.add_row(
            str(service.pid),
            service.name,
            str(service.port) if service.port is not None else "—",
            _format_number(service.cpu),
            _format_number(service.memory, " MB"),
            service.command,
        )

    if error:
        table.caption = f"[red]{error}[/red]"
    return table


def build_env_table(variables: Sequence[EnvVarRecord]) -> Table:
    table = Table(title="Environment Variables", show_header=True, padding=(0, 1))
    table.add_column("Variable", style="cyan")
    table.add_column("Category", style="dim")
    table.add_column("Value", style="white", overflow="fold")

    for variable in variables:
        key = variable.key if not variable.is_system_variable else f"{variable.key} [dim](system)[/dim]"
        table.add_row(key, variable.category.value, variable.value)
    return table


def build_path_table(
    analysis: Sequence[PathEntryAnalysis],
    missing: Sequence[str] = (),
) -> Table:
    """PATH entries in order, duplicates and missing directories flagged."""
    missing_set = set(missing)
    table = Table(title="PATH", show_header=True, padding=(0, 1))
    table.add_column("#", style="dim", justify="right")
    table.add_column("Directory", overflow="fold")
    table.add_column("Notes", style="yellow")

    for entry in analysis:
        notes = []
        if entry.is_duplicate:
            others = ", ".join(str(i) for i in entry.duplicate_indices)
            notes.append(f"duplicate of {others}")
        if entry.path in missing_set:
            notes.append("missing")
        style = "yellow" if notes else "white"
        table.add_row(str(entry.index), f"[{style}]{entry.path}[/{style}]", "; ".join(notes))
    return table


def print_overview(counts: Dict[str, str], errors: Dict[str, str], console: Console) -> None:
    """Print one line per domain and any domain errors."""
    table = Table(title="Overview", show_header=False, box=None)
    table.add_column("Domain", style="cyan")
    table.add_column("Summary", style="white")

    for domain, summary in counts.items():
        if domain in errors:
            summary = f"{summary}  [red]✗ {errors[domain]}[/red]"
        table.add_row(domain.title(), summary)

    console.print()
    console.print(table)
    console.print()
