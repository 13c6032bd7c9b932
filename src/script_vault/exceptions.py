"""Exceptions raised by the sync engine and vault services."""

from typing import List, Sequence


class ScriptVaultError(Exception):
    """Base exception for script-vault."""


class FolderPermissionError(ScriptVaultError):
    """Access to the linked folder was not granted or has been revoked."""

    def __init__(self, folder: str, mode: str = "readwrite", state: str = "denied"):
        self.folder = folder
        self.mode = mode
        self.state = state
        super().__init__(f"Permission to access folder '{folder}' ({mode}) is {state}")


class WriteBackError(ScriptVaultError):
    """Writing the collection to the linked folder failed part way through.

    Files listed in ``written`` were already updated on disk; the caller keeps
    its in-memory collection unchanged and falls back to local persistence.
    """

    def __init__(self, message: str, written: Sequence[str] = ()):
        self.written: List[str] = list(written)
        super().__init__(message)


class FilenameConflictError(ScriptVaultError):
    """Two or more scripts derive the same filename."""

    def __init__(self, conflicts):
        self.conflicts = list(conflicts)
        details = "; ".join(
            f"{conflict.filename} <- {', '.join(conflict.script_ids)}" for conflict in self.conflicts
        )
        super().__init__(f"Scripts would overwrite each other on disk: {details}")


class StateStoreError(ScriptVaultError):
    """The local vault state could not be persisted."""


class ScriptNotFoundError(ScriptVaultError):
    """No script with the given id exists in the vault."""

    def __init__(self, script_id: str):
        self.script_id = script_id
        super().__init__(f"Script not found: {script_id}")
