"""Main CLI entry point for script-vault."""  # pragma: no cover

from script_vault.cli.app import app  # pragma: no cover

# Register commands
from script_vault.cli.commands import (  # noqa: F401  # pragma: no cover
    folder,
    scripts,
)

if __name__ == "__main__":  # pragma: no cover
    app()
