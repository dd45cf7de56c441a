"""Rich output helpers for the lockstep CLI."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lockstep.exceptions import ResolutionConflict, ResolutionError

console = Console()
err_console = Console(stderr=True)


def print_lock_summary(versions: dict[str, str], changes: dict[str, Any], path: Any) -> None:
    """Print the locked versions and what changed since the previous lock."""
    console.print(
        Panel("[bold green]Resolution successful[/bold green]", title="Dependency Resolution")
    )
    if versions:
        table = Table(show_header=True)
        table.add_column("Package", style="bold")
        table.add_column("Version")
        table.add_column("Change", style="dim")
        changed = {c["name"]: c for c in changes.get("changed", []) if c["field"] == "version"}
        added = set(changes.get("added", []))
        for name in sorted(versions):
            note = ""
            if name in added:
                note = "[green]added[/green]"
            elif name in changed:
                note = f"{changed[name]['old']} -> {changed[name]['new']}"
            table.add_row(name, versions[name], note)
        console.print(table)
    else:
        console.print("[dim]No dependencies to lock.[/dim]")
    for name in changes.get("removed", []):
        console.print(f"  [red]- {name}[/red]")
    console.print(f"Lock written to: {path}")


def print_conflict(exc: ResolutionError) -> None:
    """Print why resolution failed."""
    err_console.print(
        Panel("[bold red]Resolution failed[/bold red]", title="Dependency Resolution")
    )
    causes = getattr(exc, "causes", None)
    if not causes:
        err_console.print(f"  [red]{exc}[/red]")
        return
    table = Table(show_header=True, title="Conflicting requirements")
    table.add_column("Package", style="bold")
    table.add_column("Required")
    table.add_column("By")
    table.add_column("Already")
    table.add_column("Reason", style="dim")
    for cause in causes:
        already = f"=={cause.pinned}" if cause.pinned is not None else (str(cause.existing) or "*")
        table.add_row(cause.name, str(cause.incoming) or "*", cause.origin, already, cause.reason)
    err_console.print(table)


def print_install_summary(installed: list[str], unchanged: list[str], relocked: bool) -> None:
    if relocked:
        console.print("[yellow]Lock was missing or out of date and has been refreshed.[/yellow]")
    for pin in installed:
        console.print(f"  [green]+ {pin}[/green]")
    console.print(
        f"Installed [bold]{len(installed)}[/bold] packages, "
        f"{len(unchanged)} already up to date."
    )


def print_check(status: str, errors: list[str]) -> None:
    styles = {"fresh": "bold green", "stale": "bold yellow", "missing": "bold red"}
    console.print(f"Lock status: [{styles.get(status, 'white')}]{status}[/]")
    for error in errors:
        console.print(f"  [red]- {error}[/red]")


def is_not_found(exc: ResolutionConflict) -> bool:
    """True when every recorded cause is an unknown package."""
    return bool(exc.causes) and all(c.reason == "package not found" for c in exc.causes)
