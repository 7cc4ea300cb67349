# retrace/cli/main.py
"""
Command-line interface for inspecting and reversing recorded operations.
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.syntax import Syntax
from rich.table import Table

from retrace import __version__
from retrace.api import create_backup_store, create_tracker
from retrace.config import AppConfig, ConfigManager
from retrace.constants import APP_DESCRIPTION, DEFAULT_BACKUP_MAX_AGE_DAYS
from retrace.models import CascadePolicy, Operation, OperationStatus
from retrace.operations.interfaces import OperationResult
from retrace.tracker import OperationTracker
from retrace.utils.logging import setup_logging, get_logger

app = typer.Typer(help=APP_DESCRIPTION)
logger = get_logger(__name__)
console = Console()

_STATUS_STYLES = {
    OperationStatus.ACTIVE: "green",
    OperationStatus.UNDONE: "yellow",
    OperationStatus.FAILED: "red",
    OperationStatus.PARTIAL: "magenta",
    OperationStatus.PENDING: "blue",
}


def version_callback(value: bool):
    """Display version information and exit."""
    if value:
        console.print(f"retrace version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Enable debug mode"
    ),
    workspace: Path = typer.Option(
        Path("."), "--workspace", "-w", help="Workspace whose operation log to use"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="Configuration file to load"
    ),
    version: bool = typer.Option(
        False, "--version", "-v", callback=version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """retrace: undo and redo file system actions performed by coding agents"""
    config = ConfigManager(config_file).load_config()
    if debug:
        config.debug = True

    setup_logging(debug=config.debug)
    ctx.obj = {"config": config, "workspace": workspace, "tracker": None}


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


def _tracker(ctx: typer.Context) -> OperationTracker:
    if ctx.obj["tracker"] is None:
        ctx.obj["tracker"] = create_tracker(_config(ctx), ctx.obj["workspace"])
    return ctx.obj["tracker"]


def _require_operation(tracker: OperationTracker, operation_id: str) -> Operation:
    operation = tracker.get_operation(operation_id)
    if operation is None:
        console.print(f"[red]Operation with ID {operation_id} not found.[/red]")
        raise typer.Exit(1)
    return operation


def _status_text(status: OperationStatus) -> str:
    style = _STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def _operation_panel(operation: Operation, title: str = "Operation Details") -> Panel:
    lines = [
        f"[bold]ID:[/bold] {operation.id}",
        f"[bold]Kind:[/bold] {operation.kind.value}",
        f"[bold]Description:[/bold] {operation.describe()}",
        f"[bold]Status:[/bold] {_status_text(operation.status)}",
        f"[bold]Timestamp:[/bold] {operation.timestamp.isoformat()}",
    ]
    if operation.session_id:
        lines.append(f"[bold]Session:[/bold] {operation.session_id}")
    if operation.message_id:
        lines.append(f"[bold]Message:[/bold] {operation.message_id}")
    if operation.depends_on:
        lines.append(f"[bold]Depends on:[/bold] {', '.join(operation.depends_on)}")
    if operation.dependents:
        lines.append(f"[bold]Dependents:[/bold] {', '.join(operation.dependents)}")
    if operation.error:
        lines.append(f"[bold]Error:[/bold] [red]{operation.error}[/red]")
    return Panel("\n".join(lines), title=title, expand=False)


def _print_result(result: OperationResult, action: str) -> None:
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    if result.success:
        console.print(f"[green]{result.message}[/green]")
        if result.backup_path:
            console.print(f"Backup: {result.backup_path}")
        return

    console.print(f"[red]Failed to {action}:[/red] {result.message}")
    if result.affected_operations:
        console.print("[bold]Affected operations:[/bold]")
        for op in result.affected_operations:
            console.print(f"  {op.id}  {op.describe()}  ({op.status.value})")
    raise typer.Exit(1)


@app.command("list", help="List recorded operations")
def list_operations(
    ctx: typer.Context,
    limit: int = typer.Option(20, help="Maximum number of operations to show"),
    show_all: bool = typer.Option(False, "--all", help="Show every session, not just the current one"),
    session: Optional[str] = typer.Option(None, help="Show the operations of this session"),
):
    """List recorded operations, newest last."""
    tracker = _tracker(ctx)
    if show_all:
        operations = tracker.operations
    else:
        operations = tracker.get_session_operations(session)

    if not operations:
        console.print("[yellow]No operations found.[/yellow]")
        return

    table = Table(title="Recorded Operations")
    table.add_column("ID", style="cyan")
    table.add_column("Timestamp", style="green")
    table.add_column("Kind", style="white")
    table.add_column("Description", style="blue")
    table.add_column("Status")
    table.add_column("Depends on", style="magenta")

    for operation in operations[-limit:]:
        table.add_row(
            operation.id,
            operation.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            operation.kind.value,
            operation.describe(),
            _status_text(operation.status),
            str(len(operation.depends_on)) if operation.depends_on else "",
        )

    console.print(table)
    console.print("\n[bold]Use the following commands to reverse an operation:[/bold]")
    console.print("  [blue]retrace preview <ID>[/blue]")
    console.print("  [blue]retrace undo <ID>[/blue]")


@app.command("show", help="Show the details of an operation")
def show_operation(
    ctx: typer.Context,
    operation_id: str = typer.Argument(..., help="ID of the operation"),
):
    """Show an operation and its payload."""
    operation = _require_operation(_tracker(ctx), operation_id)
    console.print(_operation_panel(operation))
    payload = json.dumps(operation.payload.to_dict(), indent=2)
    console.print(Syntax(payload, "json", theme="monokai", word_wrap=True))


@app.command("preview", help="Preview what undoing or redoing an operation would do")
def preview_operation(
    ctx: typer.Context,
    operation_id: str = typer.Argument(..., help="ID of the operation"),
    redo: bool = typer.Option(False, "--redo", help="Preview a redo instead of an undo"),
):
    """Preview an undo or redo without changing anything."""
    tracker = _tracker(ctx)
    operation = _require_operation(tracker, operation_id)

    if redo:
        preview = asyncio.run(tracker.preview_redo(operation_id))
    else:
        preview = asyncio.run(tracker.preview_undo(operation_id))

    action = "redo" if redo else "undo"
    if preview is None:
        console.print(f"[yellow]Cannot {action} an operation that is {operation.status.value}.[/yellow]")
        raise typer.Exit(1)

    console.print(Panel(preview.changes, title=f"Preview {action}: {operation.describe()}", expand=False))
    if preview.cascading_operations:
        console.print("[bold]Cascading operations:[/bold]")
        for op in preview.cascading_operations:
            console.print(f"  {op.id}  {op.describe()}")
    for warning in preview.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def _reverse(ctx: typer.Context, operation_id: str, action: str, force: bool,
             cascade: Optional[CascadePolicy]) -> None:
    tracker = _tracker(ctx)
    operation = _require_operation(tracker, operation_id)
    console.print(_operation_panel(operation))

    if not force and not Confirm.ask(f"Are you sure you want to {action} this operation?"):
        console.print(f"[yellow]{action.capitalize()} cancelled.[/yellow]")
        return

    with console.status(f"[bold green]Running {action}...[/bold green]"):
        if action == "undo":
            result = asyncio.run(tracker.undo(operation_id, cascade=cascade))
        else:
            result = asyncio.run(tracker.redo(operation_id, cascade=cascade))

    _print_result(result, action)


@app.command("undo", help="Undo an operation")
def undo_operation(
    ctx: typer.Context,
    operation_id: str = typer.Argument(..., help="ID of the operation to undo"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    cascade: Optional[CascadePolicy] = typer.Option(
        None, "--cascade", case_sensitive=False, help="How to treat dependent operations"
    ),
):
    """Undo an operation by ID."""
    _reverse(ctx, operation_id, "undo", force, cascade)


@app.command("redo", help="Redo an undone operation")
def redo_operation(
    ctx: typer.Context,
    operation_id: str = typer.Argument(..., help="ID of the operation to redo"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    cascade: Optional[CascadePolicy] = typer.Option(
        None, "--cascade", case_sensitive=False, help="How to treat prerequisite operations"
    ),
):
    """Redo an operation by ID."""
    _reverse(ctx, operation_id, "redo", force, cascade)


@app.command("clear", help="Forget every recorded operation for the workspace")
def clear_operations(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
):
    """Clear the workspace's operation log. Files on disk are not touched."""
    tracker = _tracker(ctx)
    count = len(tracker.operations)
    if not force and not Confirm.ask(f"Forget all {count} recorded operation(s)?"):
        console.print("[yellow]Clear cancelled.[/yellow]")
        return

    tracker.clear()
    console.print(f"[green]Cleared {count} operation(s).[/green]")


@app.command("cleanup-backups", help="Remove old backup files")
def cleanup_backups(
    ctx: typer.Context,
    days: int = typer.Option(DEFAULT_BACKUP_MAX_AGE_DAYS, help="Remove backups older than this many days"),
):
    """Remove backups older than the given number of days."""
    store = create_backup_store(_config(ctx))
    try:
        removed = asyncio.run(store.cleanup_backups(days))
    except Exception as e:
        logger.exception("Error cleaning up backups")
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        sys.exit(1)

    console.print(f"[green]Removed {removed} backup(s) older than {days} day(s).[/green]")
