"""Common test fixtures."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

import pytest

import script_vault.config as config_module
from script_vault.config import ConfigManager, ScriptVaultConfig
from script_vault.handles import (
    DirectoryEntry,
    EntryKind,
    FileInfo,
    FileSnapshot,
    PermissionMode,
    PermissionState,
    guess_mime_type,
)
from script_vault.storage import StateStore
from script_vault.sync.sync_service import SyncService

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class MemoryDirectoryHandle:
    """In-memory DirectoryHandle with explicit modification instants.

    Counts reads per file so tests can assert that unchanged files were never
    opened, and can be switched to deny permission or fail writes.
    """

    def __init__(self, name: str = "scripts", clock: datetime = BASE_TIME):
        self.name = name
        self.clock = clock
        self.files: Dict[str, bytes] = {}
        self.mtimes: Dict[str, datetime] = {}
        self.mime_types: Dict[str, str] = {}
        self.directories: List[str] = []
        self.permission = PermissionState.GRANTED
        self.reads: List[str] = []
        self.writes: List[str] = []
        self.removed: List[str] = []
        self.fail_writes_for: set = set()
        self.fail_removes = False

    def tick(self, seconds: int = 1) -> datetime:
        """Advance the handle's clock; later writes get a newer mtime."""
        self.clock = self.clock + timedelta(seconds=seconds)
        return self.clock

    def add_file(
        self,
        name: str,
        content: str | bytes,
        modified_at: Optional[datetime] = None,
        mime_type: Optional[str] = None,
    ) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.files[name] = data
        self.mtimes[name] = modified_at or self.clock
        if mime_type is not None:
            self.mime_types[name] = mime_type

    def text(self, name: str) -> str:
        return self.files[name].decode("utf-8")

    def read_count(self, name: str) -> int:
        return self.reads.count(name)

    async def query_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        return self.permission

    async def request_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        return self.permission

    async def entries(self) -> AsyncIterator[DirectoryEntry]:
        for name in self.directories:
            yield DirectoryEntry(name, EntryKind.DIRECTORY)
        for name in list(self.files):
            yield DirectoryEntry(name, EntryKind.FILE)

    async def stat_file(self, name: str) -> FileInfo:
        if name not in self.files:
            raise FileNotFoundError(name)
        return FileInfo(
            name=name,
            size=len(self.files[name]),
            modified_at=self.mtimes[name],
            mime_type=self.mime_types.get(name, guess_mime_type(name)),
        )

    async def read_file(self, name: str) -> FileSnapshot:
        info = await self.stat_file(name)
        self.reads.append(name)
        return FileSnapshot(info=info, data=self.files[name])

    async def write_file(self, name: str, content: str) -> None:
        if name in self.fail_writes_for:
            raise OSError(f"disk full while writing {name}")
        self.writes.append(name)
        self.add_file(name, content, modified_at=self.tick())

    async def remove_entry(self, name: str) -> None:
        if self.fail_removes:
            raise PermissionError(name)
        if name not in self.files:
            raise FileNotFoundError(name)
        del self.files[name]
        del self.mtimes[name]
        self.removed.append(name)


class NoDeleteDirectoryHandle(MemoryDirectoryHandle):
    """Handle without the optional remove_entry capability."""

    remove_entry = None  # type: ignore[assignment]


class CaseFoldingDirectoryHandle(MemoryDirectoryHandle):
    """Handle that behaves like a case-insensitive filesystem.

    Names that differ only in case address the same file, and the file keeps
    the case it was first created with.
    """

    def _existing(self, name: str) -> str:
        for existing in self.files:
            if existing.casefold() == name.casefold():
                return existing
        return name

    async def stat_file(self, name: str) -> FileInfo:
        return await super().stat_file(self._existing(name))

    async def read_file(self, name: str) -> FileSnapshot:
        return await super().read_file(self._existing(name))

    async def write_file(self, name: str, content: str) -> None:
        await super().write_file(self._existing(name), content)

    async def remove_entry(self, name: str) -> None:
        await super().remove_entry(self._existing(name))


@pytest.fixture
def config_home(tmp_path, monkeypatch) -> Path:
    # Patch HOME environment variable for the duration of the test
    monkeypatch.setenv("HOME", str(tmp_path))
    # On Windows, also set USERPROFILE
    if os.name == "nt":
        monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.delenv("SCRIPT_VAULT_CONFIG_DIR", raising=False)
    return tmp_path


@pytest.fixture
def app_config(config_home) -> ScriptVaultConfig:
    return ScriptVaultConfig(env="test")


@pytest.fixture
def config_manager(app_config: ScriptVaultConfig, config_home: Path) -> ConfigManager:
    # Invalidate config cache to ensure clean state for each test
    config_module._CONFIG_CACHE = None

    config_manager = ConfigManager()
    config_manager.save_config(app_config)
    yield config_manager
    config_module._CONFIG_CACHE = None


@pytest.fixture
def handle() -> MemoryDirectoryHandle:
    return MemoryDirectoryHandle()


@pytest.fixture
def sync_service(app_config: ScriptVaultConfig) -> SyncService:
    return SyncService(app_config)


@pytest.fixture
def state_store(tmp_path) -> StateStore:
    return StateStore(tmp_path / "state" / "state.json")
