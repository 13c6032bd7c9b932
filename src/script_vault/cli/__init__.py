"""CLI tools for script-vault."""
