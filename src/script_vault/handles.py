"""Capability-scoped access to a linked folder.

Every read and write the sync engine performs goes through a
``DirectoryHandle``. A handle only exposes the immediate children of one
folder and carries its own permission state, so access can be revoked
independently of the process.
"""

import mimetypes
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Literal, Protocol, runtime_checkable

import aiofiles
import aiofiles.os
from loguru import logger

from script_vault.utils import from_timestamp

PermissionMode = Literal["read", "readwrite"]


class PermissionState(str, Enum):
    """Outcome of a permission query, mirroring the browser permission model."""

    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class DirectoryEntry:
    """A direct child of a linked folder."""

    name: str
    kind: EntryKind


@dataclass(frozen=True)
class FileInfo:
    """File metadata available without reading the content."""

    name: str
    size: int
    modified_at: datetime
    mime_type: str = ""


@dataclass(frozen=True)
class FileSnapshot:
    """File content together with the metadata observed when it was read."""

    info: FileInfo
    data: bytes

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def modified_at(self) -> datetime:
        return self.info.modified_at

    @property
    def mime_type(self) -> str:
        return self.info.mime_type

    def text(self) -> str:
        """Decode as UTF-8, replacing invalid sequences."""
        return self.data.decode("utf-8", errors="replace")


@runtime_checkable
class DirectoryHandle(Protocol):
    """Protocol for a granted folder capability.

    Implementations may add ``remove_entry(name)``; callers must tolerate
    handles without it.
    """

    name: str

    async def query_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        """Report the current permission state without prompting."""
        ...

    async def request_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        """Ask for permission, prompting the user where the backend supports it."""
        ...

    def entries(self) -> AsyncIterator[DirectoryEntry]:
        """Iterate the immediate children of the folder (non-recursive)."""
        ...

    async def stat_file(self, name: str) -> FileInfo:
        """Return file metadata without reading its content."""
        ...

    async def read_file(self, name: str) -> FileSnapshot:
        """Read a file's full content."""
        ...

    async def write_file(self, name: str, content: str) -> None:
        """Create or overwrite a file and flush it."""
        ...


# Content types for the script extensions the platform tables do not know
# (or map to something else, like .ts -> video/mp2t).
_MIME_TYPES = mimetypes.MimeTypes()
for _mime, _ext in (
    ("text/javascript", ".js"),
    ("text/x-typescript", ".ts"),
    ("text/x-python", ".py"),
    ("text/x-sh", ".sh"),
    ("application/json", ".json"),
    ("text/x-sql", ".sql"),
    ("text/x-go", ".go"),
    ("text/x-java", ".java"),
    ("text/x-csharp", ".cs"),
    ("text/x-c++src", ".cpp"),
    ("text/html", ".html"),
    ("text/css", ".css"),
    ("text/yaml", ".yml"),
    ("text/markdown", ".md"),
    ("text/x-ruby", ".rb"),
    ("text/x-rust", ".rs"),
    ("text/x-php", ".php"),
):
    _MIME_TYPES.add_type(_mime, _ext)


def guess_mime_type(name: str) -> str:
    """Declared content type for a filename, '' when unknown."""
    mime, _ = _MIME_TYPES.guess_type(name, strict=False)
    return mime or ""


class LocalDirectoryHandle:
    """DirectoryHandle over a directory on the local filesystem.

    Permission is derived from the operating system's access checks; the
    handle never touches anything outside its own directory.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser().resolve()
        self.name = self.path.name

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({str(self.path)!r})"

    async def query_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        if not await aiofiles.os.path.isdir(self.path):
            return PermissionState.DENIED
        flags = os.R_OK | os.X_OK
        if mode == "readwrite":
            flags |= os.W_OK
        granted = await aiofiles.os.access(self.path, flags)
        return PermissionState.GRANTED if granted else PermissionState.DENIED

    async def request_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        # The OS has no consent prompt; requesting is the same as querying
        return await self.query_permission(mode)

    async def entries(self) -> AsyncIterator[DirectoryEntry]:
        for entry in await aiofiles.os.scandir(self.path):
            if entry.is_dir(follow_symlinks=False):
                yield DirectoryEntry(entry.name, EntryKind.DIRECTORY)
            elif entry.is_file(follow_symlinks=False):
                yield DirectoryEntry(entry.name, EntryKind.FILE)

    async def stat_file(self, name: str) -> FileInfo:
        stat_info = await aiofiles.os.stat(self._child(name))
        return FileInfo(
            name=name,
            size=stat_info.st_size,
            modified_at=from_timestamp(stat_info.st_mtime),
            mime_type=guess_mime_type(name),
        )

    async def read_file(self, name: str) -> FileSnapshot:
        info = await self.stat_file(name)
        async with aiofiles.open(self._child(name), mode="rb") as f:
            data = await f.read()
        return FileSnapshot(info=info, data=data)

    async def write_file(self, name: str, content: str) -> None:
        async with aiofiles.open(self._child(name), mode="w", encoding="utf-8", newline="") as f:
            await f.write(content)
            await f.flush()

    async def remove_entry(self, name: str) -> None:
        await aiofiles.os.remove(self._child(name))
        logger.debug(f"Removed {name} from {self.path}")

    def _child(self, name: str) -> Path:
        """Resolve a direct child, refusing anything that escapes the folder."""
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ValueError(f"Not a direct child name: {name!r}")
        child = self.path / name
        if child.is_symlink():
            raise ValueError(f"Refusing to follow symlink: {name!r}")
        return child
