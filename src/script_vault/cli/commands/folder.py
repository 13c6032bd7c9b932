"""Commands that link the vault to a folder and move scripts in and out of it."""

from pathlib import Path

import typer
from rich.panel import Panel
from rich.table import Table

from script_vault.cli.app import app
from script_vault.cli.commands.command_utils import (
    console,
    get_vault_service,
    linked_handle,
    require_linked_handle,
    run_command,
)
from script_vault.config import ConfigManager
from script_vault.handles import LocalDirectoryHandle


@app.command()
def link(
    path: Path = typer.Argument(..., help="Folder to link", file_okay=False),
) -> None:
    """Link a folder and import every script in it.

    The vault is replaced by the folder's contents; settings are kept.
    """
    if not path.expanduser().is_dir():
        console.print(f"[red]Error: not a directory: {path}[/red]")
        raise typer.Exit(1)

    config_manager = ConfigManager()
    service = get_vault_service(config_manager.config)
    handle = LocalDirectoryHandle(path)
    state = run_command(service.link_folder(handle))
    config_manager.set_linked_folder(handle.path)
    console.print(f"Linked [cyan]{handle.path}[/cyan]: {len(state.scripts)} script(s)")


@app.command()
def unlink() -> None:
    """Forget the linked folder. Scripts stay in the local vault."""
    config_manager = ConfigManager()
    folder = config_manager.config.linked_folder
    if not folder:
        console.print("[yellow]No folder is linked[/yellow]")
        return
    config_manager.clear_linked_folder()
    console.print(f"Unlinked [cyan]{folder}[/cyan]")


@app.command()
def sync() -> None:
    """Pull changes made in the linked folder since the last sync."""
    config = ConfigManager().config
    handle = require_linked_handle(config)
    run_command(get_vault_service(config).sync_from_folder(handle))


@app.command()
def resync() -> None:
    """Re-import the linked folder, replacing the local scripts."""
    config = ConfigManager().config
    handle = require_linked_handle(config)
    state = run_command(get_vault_service(config).resync_replace(handle))
    console.print(f"{len(state.scripts)} script(s) in vault")


@app.command()
def save() -> None:
    """Write every script to the linked folder (or only locally when none is linked)."""
    config = ConfigManager().config
    handle = linked_handle(config)
    written = run_command(get_vault_service(config).save_all(handle))
    if handle is not None and not written:
        raise typer.Exit(1)


@app.command()
def status() -> None:
    """Show the linked folder, its permission and the last sync."""
    config = ConfigManager().config
    service = get_vault_service(config)
    state = service.state
    handle = linked_handle(config)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="bold")
    table.add_column("Value")

    if handle is None:
        table.add_row("Linked folder", "[yellow]none[/yellow]")
    else:
        permission = run_command(handle.query_permission("readwrite"))
        style = "green" if permission.value == "granted" else "red"
        table.add_row("Linked folder", str(handle.path))
        table.add_row("Permission", f"[{style}]{permission.value}[/{style}]")

    last_sync = state.settings.last_sync_at
    table.add_row("Scripts", str(len(state.scripts)))
    table.add_row("Not yet on disk", str(sum(1 for script in state.scripts if not script.is_synced)))
    table.add_row("Last sync", last_sync.isoformat() if last_sync else "never")
    table.add_row("Provider", state.settings.preferred_provider)

    console.print(Panel(table, title="Script Vault", expand=False))

    conflicts = service.naming_conflicts()
    if conflicts:
        console.print("[red]Scripts that would overwrite each other on disk:[/red]")
        for conflict in conflicts:
            console.print(f"  [red]{conflict.filename}[/red] <- {', '.join(conflict.script_ids)}")
