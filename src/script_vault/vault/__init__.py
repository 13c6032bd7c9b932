"""Vault state transitions and the service that applies them."""

from script_vault.vault.actions import apply, create_blank_script, select_script, update_script
from script_vault.vault.service import LoggingNotifier, Notifier, VaultService

__all__ = [
    "LoggingNotifier",
    "Notifier",
    "VaultService",
    "apply",
    "create_blank_script",
    "select_script",
    "update_script",
]
