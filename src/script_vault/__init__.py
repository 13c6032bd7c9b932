"""Script Vault - keep a collection of code snippets mirrored to a linked folder."""

__version__ = "0.1.0"
