"""Service for syncing scripts between the vault and a linked folder."""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Dict, Hashable, List, Optional, Sequence, Set

from loguru import logger

from script_vault.config import ScriptVaultConfig
from script_vault.exceptions import (
    FilenameConflictError,
    FolderPermissionError,
    WriteBackError,
)
from script_vault.file_utils import compute_checksum
from script_vault.handles import DirectoryHandle, EntryKind, PermissionMode, PermissionState
from script_vault.languages import filename_for
from script_vault.models import ScriptItem, VaultSettings
from script_vault.sync.merge import find_filename_conflicts
from script_vault.sync.metadata import MetadataRecord, build_metadata_document
from script_vault.sync.reconcile import resolve_fields
from script_vault.sync.scanner import DirectoryScanner, ScannedText
from script_vault.utils import now_utc, to_utc


@dataclass
class IncrementalScan:
    """Files that changed on disk since the last sync.

    Attributes:
        changed: New or modified scripts, built from the files just read
        on_disk_filenames: Every script filename currently in the folder
        unchanged_by_mtime: Files skipped without reading (not newer than the watermark)
        unchanged_by_checksum: Files read but identical to what the vault already holds
    """

    changed: List[ScriptItem] = field(default_factory=list)
    on_disk_filenames: Set[str] = field(default_factory=set)
    unchanged_by_mtime: int = 0
    unchanged_by_checksum: int = 0

    def missing_paths(self, existing: Sequence[ScriptItem]) -> List[str]:
        """Paths of existing scripts whose file is no longer in the folder."""
        return [
            script.file_path
            for script in existing
            if script.file_path and script.file_path not in self.on_disk_filenames
        ]

    def has_changes(self, existing: Sequence[ScriptItem]) -> bool:
        return bool(self.changed) or bool(self.missing_paths(existing))


class SyncService:
    """Reconciles script collections with the contents of a linked folder.

    The service holds no vault state. Operations against the same folder are
    serialized with a per-folder lock; the folder handle is passed into every
    call and its permission is checked before any I/O.
    """

    def __init__(
        self,
        app_config: Optional[ScriptVaultConfig] = None,
        scanner: Optional[DirectoryScanner] = None,
    ):
        self.app_config = app_config or ScriptVaultConfig()
        self.scanner = scanner or DirectoryScanner(
            metadata_filename=self.app_config.metadata_filename,
            binary_sample_chars=self.app_config.binary_sample_chars,
            binary_non_printable_ratio=self.app_config.binary_non_printable_ratio,
            max_concurrent_reads=self.app_config.sync_max_concurrent_reads,
        )
        self._locks: Dict[Hashable, asyncio.Lock] = {}

    @asynccontextmanager
    async def _folder_lock(self, handle: DirectoryHandle) -> AsyncIterator[None]:
        """Serialize operations that target the same folder."""
        path = getattr(handle, "path", None)
        key: Hashable = str(path) if path is not None else id(handle)
        lock = self._locks.setdefault(key, asyncio.Lock())
        if lock.locked():
            logger.debug(f"Waiting for in-flight operation on folder {handle.name}")
        async with lock:
            yield

    async def ensure_permission(self, handle: DirectoryHandle, mode: PermissionMode) -> None:
        """Fail before any I/O when the folder capability is not granted.

        Raises:
            FolderPermissionError: If permission is denied or still needs a prompt
        """
        state = await handle.query_permission(mode)
        if state != PermissionState.GRANTED:
            logger.warning(f"Permission for folder {handle.name} ({mode}) is {state.value}")
            raise FolderPermissionError(handle.name, mode, state.value)

    async def scan_full(self, handle: DirectoryHandle) -> List[ScriptItem]:
        """Import every script in the folder.

        Used when a folder is first linked and for an explicit replace resync.
        Scripts described by the metadata document come first, in document
        order, then every remaining file in enumeration order.

        Args:
            handle: Folder to import from

        Returns:
            The full reconciled list of scripts
        """
        start_time = time.time()
        async with self._folder_lock(handle):
            await self.ensure_permission(handle, "read")
            listing = await self.scanner.list_folder(handle)
            read = await self.scanner.read_texts(handle, listing.filenames)

            now = now_utc()
            imported: List[ScriptItem] = []
            claimed: Set[str] = set()

            if listing.metadata is not None:
                for record in listing.metadata.items:
                    filename = record.target_filename
                    if not filename or filename in claimed or filename not in read.texts:
                        continue
                    claimed.add(filename)
                    imported.append(self._build_script(read.texts[filename], record, None, now))

            for filename in listing.filenames:
                if filename in claimed or filename not in read.texts:
                    continue
                imported.append(self._build_script(read.texts[filename], None, None, now))

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Full scan of {handle.name} completed: imported={len(imported)}, "
            f"from_metadata={len(claimed)}, binary={len(read.binary)}, "
            f"skipped={len(listing.skipped)}, duration_ms={duration_ms}"
        )
        return imported

    async def scan_incremental(
        self,
        handle: DirectoryHandle,
        existing: Sequence[ScriptItem],
        last_sync_at: Optional[datetime] = None,
    ) -> IncrementalScan:
        """Find files that are new or modified since the last sync.

        Files whose modification instant is not after ``last_sync_at`` are
        never read. Newer files are read and fingerprinted; a file whose
        fingerprint matches the one already recorded for its filename is not
        reported (the mtime moved but the content did not).

        Deleted files are not reported here. Compare ``on_disk_filenames``
        with the existing scripts to find them.

        Args:
            handle: Folder to scan
            existing: Scripts currently held in memory
            last_sync_at: Watermark of the last successful sync, None to read everything
        """
        start_time = time.time()
        watermark = to_utc(last_sync_at) if last_sync_at else None
        result = IncrementalScan()

        previous_by_path: Dict[str, ScriptItem] = {}
        for script in existing:
            if script.file_path and script.file_path not in previous_by_path:
                previous_by_path[script.file_path] = script

        async with self._folder_lock(handle):
            await self.ensure_permission(handle, "read")
            listing = await self.scanner.list_folder(handle)
            records = listing.metadata.by_filename() if listing.metadata else {}

            to_read: List[str] = []
            for info in listing.files:
                result.on_disk_filenames.add(info.name)
                if watermark is not None and info.modified_at <= watermark:
                    result.unchanged_by_mtime += 1
                    continue
                to_read.append(info.name)

            read = await self.scanner.read_texts(handle, to_read)
            result.on_disk_filenames -= read.vanished

            now = now_utc()
            for filename in to_read:
                scanned = read.texts.get(filename)
                if scanned is None:
                    continue
                checksum = compute_checksum(scanned.content)
                previous = previous_by_path.get(filename)
                if previous is not None and previous.content_hash == checksum:
                    result.unchanged_by_checksum += 1
                    logger.trace(f"File unchanged (checksum match): {filename}")
                    continue
                result.changed.append(
                    self._build_script(
                        scanned,
                        records.get(filename),
                        previous,
                        now,
                        checksum=checksum,
                        changed_at=scanned.modified_at,
                    )
                )

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Incremental scan of {handle.name} completed: changed={len(result.changed)}, "
            f"on_disk={len(result.on_disk_filenames)}, read={len(to_read)}, "
            f"unchanged_by_mtime={result.unchanged_by_mtime}, "
            f"unchanged_by_checksum={result.unchanged_by_checksum}, duration_ms={duration_ms}"
        )
        return result

    async def write_all(
        self,
        handle: DirectoryHandle,
        scripts: Sequence[ScriptItem],
        settings: Optional[VaultSettings] = None,
    ) -> List[ScriptItem]:
        """Write every script to the folder, following renames.

        A script whose previous ``file_path`` differs from its derived
        filename was renamed: the new file is written first, then the old one
        is removed on a best-effort basis. The metadata document is rewritten
        last.

        Raises:
            FolderPermissionError: If write permission is not granted
            FilenameConflictError: If two scripts derive the same filename
            WriteBackError: If a write fails part way through the batch
        """
        return await self._write_batch(handle, scripts, settings, follow_renames=True)

    async def write_only(
        self,
        handle: DirectoryHandle,
        scripts: Sequence[ScriptItem],
        settings: Optional[VaultSettings] = None,
    ) -> List[ScriptItem]:
        """Write every script to the folder without rename handling."""
        return await self._write_batch(handle, scripts, settings, follow_renames=False)

    async def remove_file(self, handle: DirectoryHandle, filename: str) -> bool:
        """Best-effort removal of one file. Returns True if it was removed."""
        async with self._folder_lock(handle):
            return await self._remove_quietly(handle, filename)

    async def _write_batch(
        self,
        handle: DirectoryHandle,
        scripts: Sequence[ScriptItem],
        settings: Optional[VaultSettings],
        follow_renames: bool,
    ) -> List[ScriptItem]:
        start_time = time.time()
        async with self._folder_lock(handle):
            await self.ensure_permission(handle, "readwrite")

            conflicts = find_filename_conflicts(scripts)
            if conflicts:
                logger.warning(f"Refusing to write {handle.name}: {len(conflicts)} filename conflicts")
                raise FilenameConflictError(conflicts)

            targets = {filename_for(script) for script in scripts}
            written: List[str] = []
            updated: List[ScriptItem] = []
            case_renames: List[tuple[str, str]] = []
            removed = 0

            for script in scripts:
                filename = filename_for(script)
                updated.append(await self._write_script(handle, script, filename, written))

                old_path = script.file_path
                if not (follow_renames and old_path and old_path != filename and old_path not in targets):
                    continue
                if old_path.casefold() == filename.casefold():
                    case_renames.append((old_path, filename))
                elif await self._remove_quietly(handle, old_path):
                    removed += 1

            if case_renames:
                removed += await self._remove_case_renamed(handle, case_renames)

            await self._write_metadata(handle, updated, settings, written)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Wrote {len(updated)} scripts to {handle.name}: renamed_removed={removed}, "
            f"duration_ms={duration_ms}"
        )
        return updated

    async def _write_script(
        self,
        handle: DirectoryHandle,
        script: ScriptItem,
        filename: str,
        written: List[str],
    ) -> ScriptItem:
        try:
            await handle.write_file(filename, script.content)
        except Exception as e:
            logger.error(f"Failed writing {filename} to {handle.name}: {e}")
            raise WriteBackError(
                f"Failed writing {filename} after {len(written)} files: {e}", written
            ) from e
        written.append(filename)

        try:
            disk_modified_at = (await handle.stat_file(filename)).modified_at
        except OSError as e:
            logger.debug(f"Could not stat {filename} after writing it: {e}")
            disk_modified_at = now_utc()

        return script.model_copy(
            update={
                "file_path": filename,
                "content_hash": compute_checksum(script.content),
                "disk_modified_at": disk_modified_at,
            }
        )

    async def _write_metadata(
        self,
        handle: DirectoryHandle,
        scripts: Sequence[ScriptItem],
        settings: Optional[VaultSettings],
        written: List[str],
    ) -> None:
        document = build_metadata_document(scripts, settings)
        filename = self.app_config.metadata_filename
        try:
            await handle.write_file(filename, document.to_json())
        except Exception as e:
            logger.error(f"Failed writing metadata document to {handle.name}: {e}")
            raise WriteBackError(f"Failed writing {filename}: {e}", written) from e

    async def _remove_case_renamed(
        self, handle: DirectoryHandle, renames: Sequence[tuple[str, str]]
    ) -> int:
        """Remove the old files of renames that only changed letter case.

        On a case-insensitive filesystem the write replaced the old file and
        the folder lists a single name. Both names listed means the old file
        is still a separate entry.
        """
        try:
            listed = {
                entry.name async for entry in handle.entries() if entry.kind == EntryKind.FILE
            }
        except OSError as e:
            logger.debug(f"Could not list {handle.name} for case-only renames: {e}")
            return 0

        removed = 0
        for old_path, filename in renames:
            if old_path in listed and filename in listed:
                if await self._remove_quietly(handle, old_path):
                    removed += 1
        return removed

    async def _remove_quietly(self, handle: DirectoryHandle, filename: str) -> bool:
        remove_entry = getattr(handle, "remove_entry", None)
        if remove_entry is None:
            logger.debug(f"Folder {handle.name} cannot delete files; leaving {filename}")
            return False
        try:
            await remove_entry(filename)
        except Exception as e:
            logger.debug(f"Could not remove {filename} from {handle.name}: {e}")
            return False
        return True

    def _build_script(
        self,
        scanned: ScannedText,
        record: Optional[MetadataRecord],
        previous: Optional[ScriptItem],
        now: datetime,
        checksum: Optional[str] = None,
        changed_at: Optional[datetime] = None,
    ) -> ScriptItem:
        content_hash = checksum or compute_checksum(scanned.content)
        fields = resolve_fields(
            scanned.name,
            record,
            previous,
            content_hash=content_hash,
            now=now,
            changed_at=changed_at,
            default_language=self.app_config.default_language,
        )
        return ScriptItem(
            id=fields.id,
            name=fields.name,
            description=fields.description,
            language=fields.language,
            content=scanned.content,
            created_at=fields.created_at,
            updated_at=fields.updated_at,
            file_path=scanned.name,
            content_hash=content_hash,
            disk_modified_at=scanned.modified_at,
        )
