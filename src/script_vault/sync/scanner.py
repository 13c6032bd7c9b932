"""Enumerate a linked folder and read its script files."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Dict, Iterable, List, Optional, Set, TypeVar

from loguru import logger

from script_vault.exceptions import FolderPermissionError
from script_vault.file_utils import (
    BINARY_NON_PRINTABLE_RATIO,
    BINARY_SAMPLE_CHARS,
    is_probably_binary,
    is_text_like_mime,
)
from script_vault.handles import DirectoryHandle, EntryKind, FileInfo
from script_vault.config import METADATA_FILE_NAME
from script_vault.languages import is_supported_filename
from script_vault.sync.metadata import MetadataDocument, parse_metadata_document

T = TypeVar("T")


@dataclass(frozen=True)
class ScannedText:
    """Decoded content of a script file and when it was last modified."""

    name: str
    content: str
    modified_at: datetime


@dataclass
class FolderListing:
    """Result of enumerating a linked folder once.

    Attributes:
        files: Supported files with a text-like declared type, in enumeration order
        metadata: Parsed metadata document, None when absent or malformed
        skipped: Names of entries that were ignored
    """

    files: List[FileInfo] = field(default_factory=list)
    metadata: Optional[MetadataDocument] = None
    skipped: List[str] = field(default_factory=list)

    @property
    def filenames(self) -> List[str]:
        return [info.name for info in self.files]


@dataclass
class ReadResult:
    """Content read from a batch of files.

    Attributes:
        texts: Decoded text for every file that is really text
        binary: Files whose content looked binary
        vanished: Files that disappeared before they could be read
    """

    texts: Dict[str, ScannedText] = field(default_factory=dict)
    binary: Set[str] = field(default_factory=set)
    vanished: Set[str] = field(default_factory=set)


class DirectoryScanner:
    """Lists script files in a folder, separating out the metadata document."""

    def __init__(
        self,
        metadata_filename: str = METADATA_FILE_NAME,
        binary_sample_chars: int = BINARY_SAMPLE_CHARS,
        binary_non_printable_ratio: float = BINARY_NON_PRINTABLE_RATIO,
        max_concurrent_reads: int = 8,
    ):
        self.metadata_filename = metadata_filename
        self.binary_sample_chars = binary_sample_chars
        self.binary_non_printable_ratio = binary_non_printable_ratio
        self.max_concurrent_reads = max_concurrent_reads

    def is_metadata_name(self, name: str) -> bool:
        return name.lower() == self.metadata_filename.lower()

    async def list_folder(self, handle: DirectoryHandle) -> FolderListing:
        """Enumerate the folder once and classify its entries.

        Only metadata is read here; script files are only stat'ed.

        Raises:
            FolderPermissionError: If the folder cannot be enumerated
        """
        listing = FolderListing()
        candidates: List[str] = []
        metadata_entry: Optional[str] = None

        try:
            async for entry in handle.entries():
                if entry.kind != EntryKind.FILE:
                    continue
                if self.is_metadata_name(entry.name):
                    if metadata_entry is None:
                        metadata_entry = entry.name
                    else:
                        logger.debug(f"Ignoring second metadata document: {entry.name}")
                        listing.skipped.append(entry.name)
                    continue
                if not is_supported_filename(entry.name):
                    listing.skipped.append(entry.name)
                    continue
                candidates.append(entry.name)
        except PermissionError as e:
            raise FolderPermissionError(handle.name, "read") from e

        if metadata_entry is not None:
            listing.metadata = await self._read_metadata(handle, metadata_entry)

        infos = await self._gather_bounded(self._stat_or_none(handle, name) for name in candidates)
        for name, info in zip(candidates, infos):
            if info is None:
                listing.skipped.append(name)
            elif not is_text_like_mime(info.mime_type):
                logger.debug(f"Skipping {name}: declared type {info.mime_type} is not text")
                listing.skipped.append(name)
            else:
                listing.files.append(info)

        logger.debug(
            f"Listed folder {handle.name}: files={len(listing.files)}, "
            f"skipped={len(listing.skipped)}, metadata={listing.metadata is not None}"
        )
        return listing

    async def read_texts(self, handle: DirectoryHandle, names: Iterable[str]) -> ReadResult:
        """Read and decode files concurrently, dropping binary content.

        Raises:
            FolderPermissionError: If a file cannot be read for lack of permission
        """
        names = list(names)
        result = ReadResult()
        snapshots = await self._gather_bounded(self._read_or_none(handle, name) for name in names)
        for name, snapshot in zip(names, snapshots):
            if snapshot is None:
                result.vanished.add(name)
                continue
            content = snapshot.text()
            if is_probably_binary(
                content, self.binary_sample_chars, self.binary_non_printable_ratio
            ):
                logger.debug(f"Skipping {name}: content looks binary")
                result.binary.add(name)
                continue
            result.texts[name] = ScannedText(
                name=name, content=content, modified_at=snapshot.modified_at
            )
        return result

    async def _read_metadata(
        self, handle: DirectoryHandle, name: str
    ) -> Optional[MetadataDocument]:
        try:
            snapshot = await handle.read_file(name)
        except PermissionError as e:
            raise FolderPermissionError(handle.name, "read") from e
        except OSError as e:
            logger.debug(f"Could not read metadata document {name}: {e}")
            return None
        return parse_metadata_document(snapshot.text())

    async def _stat_or_none(self, handle: DirectoryHandle, name: str) -> Optional[FileInfo]:
        try:
            return await handle.stat_file(name)
        except PermissionError as e:
            raise FolderPermissionError(handle.name, "read") from e
        except FileNotFoundError:
            # deleted between enumeration and stat
            return None

    async def _read_or_none(self, handle: DirectoryHandle, name: str):
        try:
            return await handle.read_file(name)
        except PermissionError as e:
            raise FolderPermissionError(handle.name, "read") from e
        except FileNotFoundError:
            return None

    async def _gather_bounded(self, coros: Iterable[Awaitable[T]]) -> List[T]:
        semaphore = asyncio.Semaphore(self.max_concurrent_reads)

        async def run(coro: Awaitable[T]) -> T:
            async with semaphore:
                return await coro

        # the first failure cancels the remaining reads
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(run(coro)) for coro in coros]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]
        return [task.result() for task in tasks]
