"""
Command-line interface for restore operations.

Replaces the workspace with a snapshot loaded from a local file or a
remote adapter, lists stored snapshots and validates a snapshot without
restoring it.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table
from rich.panel import Panel
from rich.prompt import Confirm

from ..adapters.base import AdapterKind
from ..adapters.local import create_local_adapter, list_snapshot_files, read_snapshot_file
from ..adapters.registry import create_default_registry
from ..config import get_workspace_config
from ..exceptions import ReconciliationError, WorkspaceBackupError
from ..restore.manager import WorkspaceRestoreManager
from ..snapshot.models import Snapshot
from ..validation.integrity_checker import IntegrityChecker, ValidationResult

# Create Typer app
restore_app = typer.Typer(
    name="restore",
    help="Replace the workspace with the contents of a snapshot.",
    add_completion=False
)

# Rich console for pretty output
console = Console()

STATE_MESSAGES = {
    "untouched": "The workspace was not modified.",
    "empty": "The workspace was wiped and is now empty.",
    "partial": "The workspace is partially restored; see the failures above.",
    "restored": "The workspace was fully restored.",
}


@restore_app.command()
def main(
    source: str = typer.Argument(
        ...,
        help="Snapshot file path (local adapter) or remote snapshot id"
    ),
    adapter: Optional[str] = typer.Option(
        None,
        "--adapter", "-a",
        help="Storage adapter id (default: from .env DEFAULT_ADAPTER)"
    ),
    workspace: Optional[Path] = typer.Option(
        None,
        "--workspace", "-w",
        help="Workspace file to replace (default: ./workspace.json)"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run", "-n",
        help="Check the snapshot without modifying the workspace"
    ),
    validate: bool = typer.Option(
        True,
        "--validate/--no-validate",
        help="Compare the workspace with the snapshot after restoring"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose logging"
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging"
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file", "-l",
        help="Log file path (default: no file logging)"
    ),
    force: bool = typer.Option(
        False,
        "--force", "-f",
        help="Skip confirmation prompts"
    )
):
    """
    Restore the workspace from a snapshot.

    The restore is destructive: every folder and file in the workspace is
    deleted before the snapshot is replayed.
    """

    console.print(Panel.fit(
        "[bold blue]Workspace Backup & Restore[/bold blue]\n"
        "[dim]Restoring from snapshot...[/dim]",
        border_style="blue"
    ))

    restore_manager = None
    try:
        config_overrides = {
            "dry_run": dry_run,
            "validate_after": validate,
            "verbose": verbose,
            "debug": debug,
        }
        if adapter:
            config_overrides["default_adapter"] = adapter
        if workspace:
            config_overrides["workspace_file"] = workspace
        if log_file:
            config_overrides["log_file"] = str(log_file)

        config = get_workspace_config(**config_overrides)
        restore_manager = WorkspaceRestoreManager(config)

        snapshot = restore_manager.load_snapshot(source)
        _display_snapshot_info(snapshot, source)

        if not force and not dry_run:
            if not Confirm.ask(
                f"\n[bold red]This deletes everything in {config.workspace_file}.[/bold red] "
                "Proceed with restoration?"
            ):
                console.print("[yellow]Restoration cancelled by user[/yellow]")
                raise typer.Exit(0)

        console.print(f"\n[dim]Workspace:[/dim] {config.workspace_file}")
        console.print(f"[dim]Dry run:[/dim] {dry_run}")
        console.print(f"[dim]Validation:[/dim] {validate}")
        console.print()

        if dry_run:
            console.print("[yellow]DRY RUN MODE:[/yellow] No changes will be made")
            console.print()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True
        ) as progress:

            task = progress.add_task("Starting restoration...", total=100)

            def update_progress(phase: str, completed: int, total: int):
                if total > 0:
                    progress.update(
                        task,
                        description=f"{phase}: {completed}/{total}",
                        completed=(completed / total) * 100
                    )

            results = restore_manager.restore(
                snapshot,
                source=source,
                progress_callback=update_progress
            )

        console.print()
        if dry_run:
            console.print("[yellow]✓[/yellow] Dry run completed successfully!")
            console.print("[dim]No changes were made to your workspace.[/dim]")
            _display_preflight(ValidationResult(**results["preflight"]))
        else:
            console.print("[green]✓[/green] Restoration completed successfully!")
            _display_restoration_stats(results)

        if config.report_file:
            console.print(f"\n[dim]Restoration report:[/dim] {config.report_file}")

    except typer.Exit:
        raise

    except KeyboardInterrupt:
        console.print("\n[yellow]Restoration cancelled by user[/yellow]")
        raise typer.Exit(1)

    except ReconciliationError as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if e.report is not None:
            _display_failures(e.report.to_dict())
        console.print(
            f"\n[bold]Workspace state:[/bold] {e.repository_state}. "
            f"{STATE_MESSAGES[e.repository_state]}"
        )
        if debug:
            console.print_exception()
        raise typer.Exit(1)

    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if debug:
            console.print_exception()
        raise typer.Exit(1)

    finally:
        if restore_manager is not None:
            restore_manager.close()


def _display_snapshot_info(snapshot: Snapshot, source: str):
    """Display snapshot information."""

    console.print(Panel.fit(
        "[bold blue]Snapshot Information[/bold blue]",
        border_style="blue"
    ))

    stats = snapshot.get_stats()
    console.print(f"[dim]Snapshot source:[/dim] {source}")
    console.print(f"[dim]Exported at:[/dim] {_format_timestamp(snapshot.exported_at)}")
    console.print(f"[dim]Format version:[/dim] {snapshot.version}")
    console.print(f"[dim]Folders:[/dim] {stats['total_folders']} ({stats['root_folders']} at root)")
    console.print(f"[dim]Files:[/dim] {stats['total_files']} ({stats['unfiled_files']} unfiled)")

    if snapshot.is_empty:
        console.print("\n[yellow]Snapshot is empty:[/yellow] restoring it clears the workspace.")


def _display_restoration_stats(results: dict):
    """Display restoration statistics."""

    replace = results.get("replace") or {}
    wipe = replace.get("wipe", {})
    replay = replace.get("replay", {})
    snapshot = replace.get("snapshot", {})

    table = Table(title="Restoration Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Phase", style="cyan")
    table.add_column("Done", style="green")
    table.add_column("Expected", style="yellow")

    table.add_row("1. Wipe files", str(wipe.get("files_deleted", 0)), "-")
    table.add_row("2. Wipe folders", str(wipe.get("folders_deleted", 0)), "-")
    table.add_row("3. Restore folders", str(replay.get("folders_created", 0)), str(snapshot.get("folders", 0)))
    table.add_row("4. Restore files", str(replay.get("files_created", 0)), str(snapshot.get("files", 0)))

    console.print()
    console.print(table)

    summary = results.get("restoration_summary", {})
    console.print(f"\n[dim]Workspace state:[/dim] {summary.get('repository_state', 'unknown')}")

    validation = results.get("validation")
    if validation:
        if validation["passed"]:
            console.print("[green]✓[/green] Restored workspace matches the snapshot")
        else:
            console.print(f"[yellow]Validation found {len(validation['errors'])} difference(s):[/yellow]")
            for error in validation["errors"][:10]:
                console.print(f"  • {error}")


def _display_failures(report: dict):
    failures = report.get("failures", [])
    if not failures:
        return

    table = Table(title="Failed Operations", show_header=True, header_style="bold magenta")
    table.add_column("Phase", style="cyan")
    table.add_column("Item", style="yellow")
    table.add_column("Name")
    table.add_column("Error", style="red")

    for failure in failures[:20]:
        table.add_row(
            failure["phase"],
            f"{failure['item_type']} {failure['item_id']}",
            failure["name"],
            failure["error"]
        )

    console.print()
    console.print(table)
    if len(failures) > 20:
        console.print(f"[dim]... and {len(failures) - 20} more[/dim]")


def _display_preflight(result: ValidationResult):
    for error in result.errors:
        console.print(f"  [red]•[/red] {error}")
    for warning in result.warnings:
        console.print(f"  [yellow]•[/yellow] {warning}")


def _format_timestamp(value: Optional[str]) -> str:
    if not value:
        return "unknown"
    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return value
    return dt.strftime("%Y-%m-%d %H:%M:%S")


@restore_app.command("list-backups")
def list_backups(
    backups_dir: Optional[Path] = typer.Option(
        None,
        "--backups-dir", "-d",
        help="Directory containing snapshot files (default: from .env BACKUP_OUTPUT_DIR)"
    ),
    adapter: Optional[str] = typer.Option(
        None,
        "--adapter", "-a",
        help="List the snapshots stored by a remote adapter instead"
    )
):
    """List stored snapshots."""

    console.print(Panel.fit(
        "[bold blue]Available Backups[/bold blue]",
        border_style="blue"
    ))

    if adapter and adapter != AdapterKind.LOCAL.value:
        _list_remote_backups(adapter)
        return

    if backups_dir is None:
        try:
            backups_dir = get_workspace_config().output_dir
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

    if not backups_dir.exists():
        console.print(f"[yellow]Backups directory not found:[/yellow] {backups_dir}")
        console.print("Run a backup first to create backup files.")
        return

    snapshot_files = list_snapshot_files(backups_dir)
    if not snapshot_files:
        console.print(f"[yellow]No snapshot files found in:[/yellow] {backups_dir}")
        return

    local = create_local_adapter()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Snapshot File", style="cyan")
    table.add_column("Exported", style="green")
    table.add_column("Folders", style="yellow")
    table.add_column("Files", style="blue")

    for path in snapshot_files:
        try:
            snapshot = local.decode(read_snapshot_file(path))
        except (WorkspaceBackupError, OSError, UnicodeDecodeError) as e:
            table.add_row(path.name, f"[red]Unreadable: {e}[/red]", "?", "?")
            continue

        table.add_row(
            path.name,
            _format_timestamp(snapshot.exported_at),
            str(len(snapshot.folders)),
            str(len(snapshot.files))
        )

    console.print(table)
    console.print(f"\n[dim]Found {len(snapshot_files)} backup(s) in {backups_dir}[/dim]")


def _list_remote_backups(adapter_id: str):
    registry = None
    try:
        registry = create_default_registry(get_workspace_config(default_adapter=adapter_id))
        storage_adapter = registry.get(adapter_id)
        snapshots = storage_adapter.require("list")()
    except (WorkspaceBackupError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        if registry is not None:
            registry.close()

    if not snapshots:
        console.print(f"[yellow]No snapshots found in:[/yellow] {storage_adapter.description}")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan")
    table.add_column("Size", style="yellow")
    table.add_column("Last Modified", style="green")

    for item in snapshots:
        last_modified = item.get("last_modified")
        if isinstance(last_modified, datetime):
            last_modified = last_modified.strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(item["key"], f"{item.get('size', 0):,} bytes", str(last_modified or "unknown"))

    console.print(table)
    console.print(f"\n[dim]Found {len(snapshots)} backup(s) in {storage_adapter.description}[/dim]")


@restore_app.command("validate-backup")
def validate_backup(
    snapshot_file: Path = typer.Argument(
        ...,
        help="Path to the snapshot file to validate"
    )
):
    """Validate a snapshot file without restoring it."""

    console.print(Panel.fit(
        "[bold blue]Backup Validation[/bold blue]",
        border_style="blue"
    ))

    try:
        if not snapshot_file.is_file():
            console.print(f"[red]Error:[/red] Snapshot file not found: {snapshot_file}")
            raise typer.Exit(1)

        snapshot = create_local_adapter().decode(read_snapshot_file(snapshot_file))
        console.print(f"[green]✓[/green] Snapshot format is valid (version {snapshot.version})")

        result = IntegrityChecker().validate_snapshot(snapshot)
        _display_snapshot_info(snapshot, str(snapshot_file))

        if not result.passed:
            console.print(f"\n[red]Found {result.total_errors} problem(s):[/red]")
            _display_preflight(result)
            raise typer.Exit(1)

        if result.warnings:
            console.print("\n[yellow]Warnings:[/yellow]")
            _display_preflight(result)

        console.print("\n[green]Backup validation passed![/green]")
        console.print("[dim]This backup can be used for restoration.[/dim]")

    except typer.Exit:
        raise

    except Exception as e:
        console.print(f"\n[red]Validation error:[/red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    restore_app()
