"""CLI commands for script-vault."""

from script_vault.cli.commands import folder, scripts

__all__ = ["folder", "scripts"]
