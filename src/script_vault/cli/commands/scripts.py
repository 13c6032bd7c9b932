"""Commands for listing and editing scripts in the vault."""

from pathlib import Path
from typing import Optional

import typer
from rich.syntax import Syntax
from rich.table import Table

from script_vault.cli.app import app
from script_vault.cli.commands.command_utils import (
    console,
    get_vault_service,
    linked_handle,
    resolve_script_id,
    run_command,
)
from script_vault.config import ConfigManager
from script_vault.languages import LANGUAGE_MAP, filename_for, language_from_filename


def read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Error: could not read {path}: {e}[/red]")
        raise typer.Exit(1)


@app.command("list")
def list_scripts() -> None:
    """List the scripts in the vault."""
    state = get_vault_service().state
    if not state.scripts:
        console.print("[yellow]The vault is empty[/yellow]")
        return

    table = Table(title="Scripts")
    table.add_column("", style="magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Language", style="green")
    table.add_column("File", style="yellow")
    table.add_column("Updated")

    for script in state.scripts:
        table.add_row(
            "*" if script.id == state.selected_id else "",
            script.id[:8],
            script.name or "Untitled",
            LANGUAGE_MAP[script.language].label,
            script.file_path or f"[dim]{filename_for(script)}[/dim]",
            script.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def show(script_id: str = typer.Argument(..., help="Script id or unique id prefix")) -> None:
    """Print a script with syntax highlighting."""
    service = get_vault_service()
    script = service.get_script(resolve_script_id(service, script_id))

    console.print(f"[bold cyan]{script.name or 'Untitled'}[/bold cyan] ({script.id})")
    if script.description:
        console.print(script.description)
    lexer = LANGUAGE_MAP[script.language].editor_mode
    console.print(Syntax(script.content, lexer, line_numbers=True))


@app.command()
def new(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Language tag"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    from_file: Optional[Path] = typer.Option(
        None, "--from-file", "-f", help="Take the content (and language) from a file"
    ),
) -> None:
    """Create a script and select it."""
    content = None
    if from_file is not None:
        content = read_source(from_file)
        if language is None:
            language = language_from_filename(from_file.name)
        if name is None:
            name = from_file.stem

    service = get_vault_service()
    try:
        script = service.create_script(
            name=name, language=language, content=content, description=description
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created[/green] {script.name} ({script.id})")


@app.command()
def edit(
    script_id: str = typer.Argument(..., help="Script id or unique id prefix"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New display name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="New description"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="New language tag"),
    from_file: Optional[Path] = typer.Option(
        None, "--from-file", "-f", help="Replace the content with a file's content"
    ),
) -> None:
    """Change a script's name, description, language or content."""
    patch = {
        key: value
        for key, value in (("name", name), ("description", description), ("language", language))
        if value is not None
    }
    if from_file is not None:
        patch["content"] = read_source(from_file)
    if not patch:
        console.print("[yellow]Nothing to change[/yellow]")
        return

    service = get_vault_service()
    resolved = resolve_script_id(service, script_id)
    try:
        script = service.update_script(resolved, **patch)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Updated[/green] {script.name} ({script.id})")


@app.command()
def delete(
    script_id: str = typer.Argument(..., help="Script id or unique id prefix"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a script, also from the linked folder."""
    config = ConfigManager().config
    service = get_vault_service(config)
    script = service.get_script(resolve_script_id(service, script_id))
    handle = linked_handle(config)

    if not yes:
        where = "the vault and the linked folder" if handle else "the vault"
        typer.confirm(f'Delete "{script.name or "Untitled"}" from {where}?', abort=True)

    run_command(service.delete_script_everywhere(script.id, handle))


@app.command()
def select(script_id: str = typer.Argument(..., help="Script id or unique id prefix")) -> None:
    """Mark a script as the current one."""
    service = get_vault_service()
    script = service.select_script(resolve_script_id(service, script_id))
    if script is not None:
        console.print(f"Selected {script.name} ({script.id})")
