"""
Command-line interface for backup operations.

Exports the workspace through the selected storage adapter and lists the
adapters available in the current configuration.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table
from rich.panel import Panel

from ..adapters.registry import create_default_registry
from ..backup.manager import WorkspaceBackupManager
from ..config import get_workspace_config

# Create Typer app
backup_app = typer.Typer(
    name="backup",
    help="Back up the workspace tree to a versioned snapshot.",
    add_completion=False
)

# Rich console for pretty output
console = Console()


@backup_app.command()
def main(
    adapter: Optional[str] = typer.Option(
        None,
        "--adapter", "-a",
        help="Storage adapter id (default: from .env DEFAULT_ADAPTER)"
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir", "-o",
        help="Directory for local snapshot files (default: ./backups)"
    ),
    workspace: Optional[Path] = typer.Option(
        None,
        "--workspace", "-w",
        help="Workspace file to export (default: ./workspace.json)"
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
    )
):
    """
    Back up the workspace.

    The local adapter writes a timestamped snapshot file; remote adapters
    upload the snapshot and print where it was stored.
    """

    console.print(Panel.fit(
        "[bold blue]Workspace Backup & Restore[/bold blue]\n"
        "[dim]Creating snapshot of your workspace...[/dim]",
        border_style="blue"
    ))

    backup_manager = None
    try:
        config_overrides = {
            "verbose": verbose,
            "debug": debug,
        }
        if adapter:
            config_overrides["default_adapter"] = adapter
        if output_dir:
            config_overrides["output_dir"] = output_dir
        if workspace:
            config_overrides["workspace_file"] = workspace
        if log_file:
            config_overrides["log_file"] = str(log_file)

        config = get_workspace_config(**config_overrides)

        if not config.workspace_file.exists():
            console.print(f"[yellow]Warning:[/yellow] Workspace file not found, exporting an empty workspace: {config.workspace_file}")

        backup_manager = WorkspaceBackupManager(config)
        selected = backup_manager.registry.current()

        console.print(f"[dim]Workspace:[/dim] {config.workspace_file}")
        console.print(f"[dim]Adapter:[/dim] {selected.id} ({selected.name})")
        if not selected.supports_upload:
            console.print(f"[dim]Output directory:[/dim] {config.output_dir}")
        console.print()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True
        ) as progress:

            task = progress.add_task("Starting backup...", total=3)

            def update_progress(step: str, completed: int, total: int):
                progress.update(
                    task,
                    description=step,
                    completed=completed,
                    total=total
                )

            result = backup_manager.start_backup(progress_callback=update_progress)

        console.print()
        console.print("[green]✓[/green] Backup completed successfully!")
        _display_backup_stats(result.stats)

        if result.remote_id:
            console.print(f"\n[dim]Remote id:[/dim] {result.remote_id}")
            if result.remote_url:
                console.print(f"[dim]Remote URL:[/dim] {result.remote_url}")
        console.print(f"\n[green]Backup saved to:[/green] [bold]{result.location}[/bold]")

    except KeyboardInterrupt:
        console.print("\n[yellow]Backup cancelled by user[/yellow]")
        raise typer.Exit(1)

    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if debug:
            console.print_exception()
        raise typer.Exit(1)

    finally:
        if backup_manager is not None:
            backup_manager.close()


def _display_backup_stats(stats: dict):
    """Display backup statistics in a formatted table."""

    table = Table(title="Backup Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Format Version", str(stats.get("version", "")))
    table.add_row("Folders", str(stats.get("total_folders", 0)))
    table.add_row("Root Folders", str(stats.get("root_folders", 0)))
    table.add_row("Files", str(stats.get("total_files", 0)))
    table.add_row("Unfiled Files", str(stats.get("unfiled_files", 0)))
    table.add_row("Content Size", f"{stats.get('total_content_chars', 0):,} chars")

    console.print()
    console.print(table)


@backup_app.command("adapters")
def list_adapters():
    """List the storage adapters available in the current configuration."""

    console.print(Panel.fit(
        "[bold blue]Storage Adapters[/bold blue]",
        border_style="blue"
    ))

    registry = None
    try:
        config = get_workspace_config()
        registry = create_default_registry(config)
        current_id = registry.current().id

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Id", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Upload")
        table.add_column("Download")
        table.add_column("Authenticate")
        table.add_column("List")
        table.add_column("Target", style="dim")

        for storage_adapter in registry.list():
            capabilities = storage_adapter.capabilities()
            marker = " *" if storage_adapter.id == current_id else ""
            table.add_row(
                storage_adapter.id + marker,
                storage_adapter.name,
                *("✓" if capabilities[name] else "-" for name in ("upload", "download", "authenticate", "list")),
                storage_adapter.description
            )

        console.print(table)
        console.print(f"\n[dim]Selected adapter (*):[/dim] {current_id}")

    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(1)

    finally:
        if registry is not None:
            registry.close()


@backup_app.command("validate-config")
def validate_config(
    adapter: Optional[str] = typer.Option(
        None,
        "--adapter", "-a",
        help="Adapter to check (default: from .env DEFAULT_ADAPTER)"
    )
):
    """Validate configuration and the selected adapter's credentials."""

    console.print(Panel.fit(
        "[bold blue]Configuration Validation[/bold blue]",
        border_style="blue"
    ))

    try:
        overrides = {"default_adapter": adapter} if adapter else {}
        config = get_workspace_config(**overrides)

        console.print("[green]✓[/green] Configuration loaded successfully")
        console.print(f"[dim]Workspace:[/dim] {config.workspace_file}")
        console.print(f"[dim]Output directory:[/dim] {config.output_dir}")

        registry = create_default_registry(config)
        selected = registry.current()
        console.print(f"[green]✓[/green] Adapter '{selected.id}' is available")

        if selected.supports_authenticate:
            console.print(f"\n[dim]Checking {selected.name} credentials...[/dim]")
            selected.authenticate()
            console.print(f"[green]✓[/green] {selected.name} access successful")

        console.print("\n[green]All checks passed![/green] Ready to backup.")

    except Exception as e:
        console.print(f"\n[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    backup_app()
