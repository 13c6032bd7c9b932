"""State transitions for the vault.

Every change to a ``VaultState`` goes through ``apply(state, result)``, where
``result`` describes what happened (a folder was imported, a script was
edited, ...). Transitions are pure: they return a new state and never touch
the folder or the local state file.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from loguru import logger

from script_vault.languages import DEFAULT_LANGUAGE, filename_for, is_known_language
from script_vault.models import ScriptItem, VaultState
from script_vault.sync.merge import merge_scripts
from script_vault.sync.sync_service import IncrementalScan
from script_vault.utils import now_utc

BLANK_SCRIPT_NAME = "Untitled Script"
BLANK_SCRIPT_CONTENT = "// Start typing...\n"

# Fields a user may change directly; sync bookkeeping is owned by the engine
EDITABLE_FIELDS = frozenset({"name", "description", "language", "content"})


@dataclass(frozen=True)
class FolderImported:
    """A full scan of the linked folder finished.

    With ``replace`` the scan becomes the whole collection, otherwise it is
    merged into the current one.
    """

    scripts: List[ScriptItem]
    synced_at: datetime
    replace: bool = True


@dataclass(frozen=True)
class FolderSynced:
    """An incremental scan of the linked folder finished."""

    scan: IncrementalScan
    synced_at: datetime


@dataclass(frozen=True)
class ScriptsWritten:
    """The collection was written to the linked folder."""

    scripts: List[ScriptItem]
    synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScriptDeleted:
    """A script was deleted.

    ``remaining`` is the collection as written back to the folder, when the
    deletion was mirrored to disk.
    """

    script_id: str
    remaining: Optional[List[ScriptItem]] = None
    synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScriptCreated:
    script: ScriptItem


@dataclass(frozen=True)
class ScriptUpdated:
    script_id: str
    patch: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScriptSelected:
    script_id: Optional[str]


VaultResult = Union[
    FolderImported,
    FolderSynced,
    ScriptsWritten,
    ScriptDeleted,
    ScriptCreated,
    ScriptUpdated,
    ScriptSelected,
]


def create_blank_script(existing: Sequence[ScriptItem] = ()) -> ScriptItem:
    """Create an empty javascript script whose filename is not taken yet.

    Names are tried in order: "Untitled Script", "Untitled Script 2", ...

    >>> create_blank_script().name
    'Untitled Script'
    """
    used_filenames = {filename_for(script) for script in existing}
    candidate = ScriptItem(name=BLANK_SCRIPT_NAME, language=DEFAULT_LANGUAGE)
    index = 1
    while filename_for(candidate) in used_filenames:
        index += 1
        candidate = candidate.model_copy(update={"name": f"{BLANK_SCRIPT_NAME} {index}"})

    now = now_utc()
    return ScriptItem(
        name=candidate.name,
        language=DEFAULT_LANGUAGE,
        content=BLANK_SCRIPT_CONTENT,
        created_at=now,
        updated_at=now,
    )


def update_script(script: ScriptItem, patch: Dict[str, Any], at: Optional[datetime] = None) -> ScriptItem:
    """Apply a user edit and refresh ``updated_at``.

    Raises:
        ValueError: If the patch names a field that cannot be edited or an unknown language
    """
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot edit script fields: {', '.join(sorted(unknown))}")

    if "language" in patch and not is_known_language(patch["language"]):
        raise ValueError(f"Unknown language '{patch['language']}'")

    data = script.model_dump()
    data.update(patch)
    data["updated_at"] = at or now_utc()
    return ScriptItem.model_validate(data)


def select_script(state: VaultState, script_id: Optional[str]) -> VaultState:
    """Select a script by id; unknown ids fall back to the first script."""
    return repair_selection(state.model_copy(update={"selected_id": script_id}))


def repair_selection(state: VaultState) -> VaultState:
    """Point ``selected_id`` at an existing script, or None when the vault is empty."""
    if state.selected_id is not None and state.selection_is_valid:
        return state
    first_id = state.scripts[0].id if state.scripts else None
    if first_id != state.selected_id:
        logger.debug(f"Selection repaired: {state.selected_id} -> {first_id}")
    return state.model_copy(update={"selected_id": first_id})


def apply(state: VaultState, result: VaultResult) -> VaultState:
    """Return the state that follows ``result``."""
    if isinstance(result, FolderImported):
        return _apply_import(state, result)
    if isinstance(result, FolderSynced):
        return _apply_sync(state, result)
    if isinstance(result, ScriptsWritten):
        settings = state.settings
        if result.synced_at is not None:
            settings = settings.with_last_sync(result.synced_at)
        return repair_selection(
            state.model_copy(update={"scripts": list(result.scripts), "settings": settings})
        )
    if isinstance(result, ScriptDeleted):
        return _apply_delete(state, result)
    if isinstance(result, ScriptCreated):
        return state.model_copy(
            update={"scripts": [result.script, *state.scripts], "selected_id": result.script.id}
        )
    if isinstance(result, ScriptUpdated):
        scripts = [
            update_script(script, result.patch, result.updated_at)
            if script.id == result.script_id
            else script
            for script in state.scripts
        ]
        return state.model_copy(update={"scripts": scripts})
    if isinstance(result, ScriptSelected):
        return select_script(state, result.script_id)
    raise TypeError(f"Unknown vault result: {type(result).__name__}")


def _apply_import(state: VaultState, result: FolderImported) -> VaultState:
    if result.replace:
        scripts = list(result.scripts)
    else:
        scripts = merge_scripts(state.scripts, result.scripts)
    return repair_selection(
        state.model_copy(
            update={
                "scripts": scripts,
                "selected_id": scripts[0].id if scripts else None,
                "settings": state.settings.with_last_sync(result.synced_at),
            }
        )
    )


def _apply_sync(state: VaultState, result: FolderSynced) -> VaultState:
    settings = state.settings.with_last_sync(result.synced_at)
    scan = result.scan
    if not scan.has_changes(state.scripts):
        return state.model_copy(update={"settings": settings})

    missing = set(scan.missing_paths(state.scripts))
    # local-only scripts (never written to the folder) are kept
    base = [script for script in state.scripts if script.file_path not in missing]
    scripts = merge_scripts(base, scan.changed)
    return repair_selection(state.model_copy(update={"scripts": scripts, "settings": settings}))


def _apply_delete(state: VaultState, result: ScriptDeleted) -> VaultState:
    if result.remaining is not None:
        scripts = list(result.remaining)
    else:
        scripts = [script for script in state.scripts if script.id != result.script_id]
    settings = state.settings
    if result.synced_at is not None:
        settings = settings.with_last_sync(result.synced_at)
    return repair_selection(state.model_copy(update={"scripts": scripts, "settings": settings}))
