from typing import Optional

import typer

from script_vault import __version__
from script_vault.config import init_cli_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        typer.echo(f"Script Vault version: {__version__}")
        raise typer.Exit()


app = typer.Typer(name="script-vault", help="Keep a collection of scripts in step with a folder")


@app.callback()
def app_callback(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Script Vault - named, typed scripts mirrored to a folder."""
    # Log to file only so command output stays clean
    init_cli_logging()
