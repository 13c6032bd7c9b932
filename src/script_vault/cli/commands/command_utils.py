"""Shared helpers for CLI commands."""

import asyncio
from pathlib import Path
from typing import Coroutine, Optional, TypeVar

import typer
from loguru import logger
from rich.console import Console

from script_vault.config import ConfigManager, ScriptVaultConfig
from script_vault.exceptions import ScriptVaultError
from script_vault.handles import LocalDirectoryHandle
from script_vault.storage import StateStore
from script_vault.sync.sync_service import SyncService
from script_vault.vault.service import VaultService

T = TypeVar("T")

console = Console()


class ConsoleNotifier:
    """Prints vault notifications to the terminal."""

    def __init__(self, output: Console = console):
        self.output = output

    def success(self, message: str) -> None:
        self.output.print(f"[green]{message}[/green]")

    def info(self, message: str) -> None:
        self.output.print(f"[blue]{message}[/blue]")

    def error(self, message: str) -> None:
        self.output.print(f"[red]{message}[/red]")


def get_vault_service(config: Optional[ScriptVaultConfig] = None) -> VaultService:
    """Build a vault service from the saved configuration."""
    config = config or ConfigManager().config
    return VaultService(
        store=StateStore(config.state_file_path),
        sync_service=SyncService(config),
        notifier=ConsoleNotifier(),
    )


def linked_handle(config: Optional[ScriptVaultConfig] = None) -> Optional[LocalDirectoryHandle]:
    """Handle for the linked folder, or None when no folder is linked."""
    config = config or ConfigManager().config
    if not config.linked_folder:
        return None
    return LocalDirectoryHandle(Path(config.linked_folder))


def require_linked_handle(config: Optional[ScriptVaultConfig] = None) -> LocalDirectoryHandle:
    handle = linked_handle(config)
    if handle is None:
        console.print("[red]No folder is linked. Run 'script-vault link PATH' first.[/red]")
        raise typer.Exit(1)
    return handle


def run_command(coro: Coroutine[None, None, T]) -> T:
    """Run a coroutine, turning vault errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except ScriptVaultError as e:
        logger.error(f"Command failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def resolve_script_id(service: VaultService, ref: str) -> str:
    """Accept a full script id or a unique prefix of one."""
    ids = [script.id for script in service.state.scripts]
    if ref in ids:
        return ref
    matches = [script_id for script_id in ids if script_id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[red]Error: no script with id {ref}[/red]")
    else:
        console.print(f"[red]Error: id prefix {ref} matches {len(matches)} scripts[/red]")
    raise typer.Exit(1)
