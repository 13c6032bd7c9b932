"""Vault service: ties the folder sync engine, local persistence and user notifications together."""

from typing import List, Optional, Protocol

from loguru import logger

from script_vault.exceptions import (
    FilenameConflictError,
    FolderPermissionError,
    ScriptNotFoundError,
    ScriptVaultError,
    WriteBackError,
)
from script_vault.handles import DirectoryHandle, PermissionState
from script_vault.languages import filename_for
from script_vault.models import ScriptItem, VaultState
from script_vault.storage import StateStore
from script_vault.sync.merge import FilenameConflict, find_filename_conflicts
from script_vault.sync.sync_service import SyncService
from script_vault.utils import now_utc
from script_vault.vault.actions import (
    FolderImported,
    FolderSynced,
    ScriptCreated,
    ScriptDeleted,
    ScriptSelected,
    ScriptsWritten,
    ScriptUpdated,
    VaultResult,
    apply,
    create_blank_script,
)
from script_vault.vault.actions import update_script as patch_script


class Notifier(Protocol):
    """Receives user-facing messages about vault operations."""

    def success(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that only writes to the log."""

    def success(self, message: str) -> None:
        logger.info(message)

    def info(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


class VaultService:
    """Owns the current vault state and keeps it in step with a linked folder.

    Every state change is a pure transition (see ``vault.actions``) followed
    by a save to the local state store, so the local copy is always current
    even when the folder cannot be written.
    """

    def __init__(
        self,
        store: StateStore,
        sync_service: Optional[SyncService] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.sync_service = sync_service or SyncService()
        self.notifier = notifier or LoggingNotifier()
        self._state: Optional[VaultState] = None

    @property
    def state(self) -> VaultState:
        if self._state is None:
            self._state = self.store.load()
        return self._state

    def _commit(self, result: VaultResult) -> VaultState:
        self._state = apply(self.state, result)
        self.store.save(self._state)
        return self._state

    def get_script(self, script_id: str) -> ScriptItem:
        script = self.state.find(script_id)
        if script is None:
            raise ScriptNotFoundError(script_id)
        return script

    async def link_folder(self, handle: DirectoryHandle) -> VaultState:
        """Link a folder and replace the collection with its contents.

        Settings such as API keys and the provider preference are kept.

        Raises:
            FolderPermissionError: If the user does not grant read/write access
        """
        permission = await handle.request_permission("readwrite")
        if permission != PermissionState.GRANTED:
            self.notifier.error("Permission to access folder was denied")
            raise FolderPermissionError(handle.name, "readwrite", permission.value)

        started_at = now_utc()
        imported = await self.sync_service.scan_full(handle)
        state = self._commit(FolderImported(imported, synced_at=started_at))
        logger.info(f"Linked folder {handle.name}: scripts={len(state.scripts)}")
        self.notifier.success("Folder linked and imported")
        return state

    async def sync_from_folder(self, handle: DirectoryHandle) -> VaultState:
        """Pull changes made in the folder since the last sync."""
        started_at = now_utc()
        previous = self.state
        scan = await self.sync_service.scan_incremental(
            handle, previous.scripts, previous.settings.last_sync_at
        )
        removed = scan.missing_paths(previous.scripts)
        state = self._commit(FolderSynced(scan, synced_at=started_at))

        if not scan.changed and not removed:
            self.notifier.info("No changes detected")
        elif removed:
            self.notifier.info(f"Synced {len(scan.changed)} file(s), removed {len(removed)}")
        else:
            self.notifier.info(f"Synced {len(scan.changed)} file(s)")
        return state

    async def resync_replace(self, handle: DirectoryHandle) -> VaultState:
        """Discard the in-memory collection and re-import the folder."""
        started_at = now_utc()
        imported = await self.sync_service.scan_full(handle)
        state = self._commit(FolderImported(imported, synced_at=started_at, replace=True))
        self.notifier.info("Synced from folder")
        return state

    async def save_all(self, handle: Optional[DirectoryHandle] = None) -> bool:
        """Write the collection to the linked folder, or only locally without one.

        A failed folder write leaves the collection unchanged and still saves
        it locally.

        Returns:
            True if the folder was written
        """
        if handle is None:
            self.store.save(self.state)
            self.notifier.success("Saved")
            return False

        started_at = now_utc()
        try:
            updated = await self.sync_service.write_all(handle, self.state.scripts, self.state.settings)
        except FilenameConflictError as e:
            self.store.save(self.state)
            names = ", ".join(conflict.filename for conflict in e.conflicts)
            self.notifier.error(f"Rename scripts before saving, these names clash on disk: {names}")
            return False
        except (WriteBackError, FolderPermissionError) as e:
            logger.warning(f"Falling back to local save: {e}")
            self.store.save(self.state)
            self.notifier.error("Failed saving to disk; changes kept locally")
            return False

        self._commit(ScriptsWritten(updated, synced_at=started_at))
        self.notifier.success("Saved to disk")
        return True

    async def delete_script_everywhere(
        self, script_id: str, handle: Optional[DirectoryHandle] = None
    ) -> ScriptItem:
        """Delete a script from the vault and, when linked, from the folder.

        The file removal is best-effort; the remaining scripts are then
        written back so the metadata document no longer lists the script.

        Raises:
            ScriptNotFoundError: If no script has this id
        """
        script = self.get_script(script_id)
        remaining = [other for other in self.state.scripts if other.id != script_id]

        if handle is not None:
            started_at = now_utc()
            try:
                await self.sync_service.ensure_permission(handle, "readwrite")
                await self.sync_service.remove_file(handle, script.file_path or filename_for(script))
                updated = await self.sync_service.write_only(handle, remaining, self.state.settings)
            except ScriptVaultError as e:
                logger.warning(f"Deleting {script_id} locally only: {e}")
            else:
                self._commit(ScriptDeleted(script_id, remaining=updated, synced_at=started_at))
                self.notifier.success("Deleted from disk")
                return script

        self._commit(ScriptDeleted(script_id))
        self.notifier.info("Script deleted")
        return script

    def create_script(
        self,
        name: Optional[str] = None,
        language: Optional[str] = None,
        content: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ScriptItem:
        """Create a script, starting from a blank one with a free name."""
        script = create_blank_script(self.state.scripts)
        patch = {
            key: value
            for key, value in (
                ("name", name),
                ("language", language),
                ("content", content),
                ("description", description),
            )
            if value is not None
        }
        if patch:
            script = patch_script(script, patch, at=script.created_at)
        self._commit(ScriptCreated(script))
        return script

    def update_script(self, script_id: str, **patch) -> ScriptItem:
        """Edit a script's name, description, language or content.

        Raises:
            ScriptNotFoundError: If no script has this id
            ValueError: If the patch is not a valid edit
        """
        self.get_script(script_id)
        self._commit(ScriptUpdated(script_id, patch))
        return self.get_script(script_id)

    def select_script(self, script_id: Optional[str]) -> Optional[ScriptItem]:
        return self._commit(ScriptSelected(script_id)).selected

    def naming_conflicts(self) -> List[FilenameConflict]:
        """Scripts that would overwrite each other if saved to a folder."""
        return find_filename_conflicts(self.state.scripts)
