"""
Rendering functions for limedev output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import List, Dict, Any, Mapping

from .domain.operation import OperationSummary

console = Console(stderr=False)

STATUS_STYLES = {
    'success': 'green',
    'unchanged': 'dim',
    'skipped': 'yellow',
    'failed': 'bold red',
    'pass': 'green',
    'fail': 'yellow',
    'unknown': 'dim',
}


def _table(title: str) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )


def render_sync_table(summary: OperationSummary) -> None:
    """Render the outcome of a synchronization run."""
    if not summary.details:
        console.print("[yellow]No repositories processed.[/yellow]")
        return

    table = _table("Repository Sync")
    table.add_column("Repository", style="cyan")
    table.add_column("Branch")
    table.add_column("Remote", style="dim")
    table.add_column("Result")
    table.add_column("Details")

    for detail in summary.details:
        data = detail.to_dict()
        style = STATUS_STYLES.get(data['status'], '')
        table.add_row(
            data['name'],
            str(data.get('branch', '')),
            str(data.get('remote', '')),
            f"[{style}]{data.get('state', data['action'])}[/{style}]" if style else data['action'],
            data.get('error') or data.get('message') or '',
        )

    console.print(table)
    render_summary_line(summary)


def render_status_table(repos: List[Dict[str, Any]]) -> None:
    """Render repository status records."""
    if not repos:
        console.print("[yellow]No repositories found.[/yellow]")
        return

    table = _table("Repository Status")
    table.add_column("Repository", style="cyan")
    table.add_column("Mode", style="dim")
    table.add_column("Pinned")
    table.add_column("Checked out")
    table.add_column("Sync")
    table.add_column("Worktree")

    for repo in repos:
        sync = repo.get('sync', '')
        if sync in ('diverged', 'not_a_repository'):
            sync = f"[red]{sync}[/red]"
        elif sync in ('behind', 'missing_branch', 'absent'):
            sync = f"[yellow]{sync}[/yellow]"
        if repo.get('remote_matches') is False:
            sync += " [red](remote differs)[/red]"
        table.add_row(
            repo.get('name', ''),
            repo.get('mode', ''),
            f"{repo.get('remote', '')}/{repo.get('branch', '')}",
            repo.get('current_branch') or ('detached' if repo.get('is_git') else '-'),
            sync,
            '[yellow]dirty[/yellow]' if repo.get('dirty') else 'clean',
        )

    console.print(table)


def render_upstream_table(summary: OperationSummary) -> None:
    """Render the outcome of upstream provisioning."""
    if not summary.details:
        console.print("[yellow]No upstream repositories found.[/yellow]")
        return

    table = _table("Upstream Setup")
    table.add_column("Repository", style="cyan")
    table.add_column("Step")
    table.add_column("Result")
    table.add_column("Details")

    for detail in summary.details:
        data = detail.to_dict()
        style = STATUS_STYLES.get(data['status'], '')
        table.add_row(
            data['name'],
            data.get('step') or data['action'],
            f"[{style}]{data['status']}[/{style}]",
            data.get('error') or data.get('message') or '',
        )

    console.print(table)
    render_summary_line(summary)


def render_aliases_table(aliases: List[Dict[str, str]]) -> None:
    """Render the git alias catalog for one or more repositories."""
    if not aliases:
        console.print("[yellow]No aliases to display.[/yellow]")
        return

    table = _table("Upstream Git Aliases")
    table.add_column("Repository", style="cyan")
    table.add_column("Alias", style="green")
    table.add_column("Description")
    table.add_column("Command", style="dim")

    for alias in aliases:
        table.add_row(alias['repo'], f"git {alias['alias']}", alias['description'], alias['command'])

    console.print(table)


def render_environment_table(env: Mapping[str, str]) -> None:
    """Render the exported environment."""
    table = _table("Lime Build Environment")
    table.add_column("Variable", style="cyan")
    table.add_column("Value")
    for name in sorted(env):
        table.add_row(name, env[name])
    console.print(table)


def render_requirements_table(checks: List[Dict[str, Any]]) -> None:
    """Render host requirement checks."""
    if not checks:
        console.print("[yellow]No \\[system_requirements] configured.[/yellow]")
        return
    table = _table("System Requirements")
    table.add_column("Check", style="cyan")
    table.add_column("Minimum", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Status")
    for check in checks:
        available = check["available_gb"]
        style = STATUS_STYLES.get(check["status"], "")
        table.add_row(
            check["check"],
            f"{check['required_gb']}GB",
            "?" if available is None else f"{available}GB",
            f"[{style}]{check['status']}[/{style}]" if style else check["status"],
        )
    console.print(table)


def render_summary_line(summary: OperationSummary) -> None:
    parts = [f"{summary.total} total", f"{summary.successful} changed",
             f"{summary.unchanged} unchanged"]
    if summary.skipped:
        parts.append(f"[yellow]{summary.skipped} skipped[/yellow]")
    if summary.failed:
        parts.append(f"[red]{summary.failed} failed[/red]")
    console.print(", ".join(parts))
