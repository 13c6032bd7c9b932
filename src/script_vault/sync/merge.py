"""Merge scanned scripts into an existing collection and detect name clashes."""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from script_vault.languages import filename_for
from script_vault.models import ScriptItem


def merge_scripts(existing: Sequence[ScriptItem], incoming: Sequence[ScriptItem]) -> List[ScriptItem]:
    """Merge incoming scripts into an existing list, keyed by ``file_path``.

    Rules:
    - an incoming script whose path matches an existing one replaces it in
      place, keeping the existing position
    - any other incoming script is appended (a path-less one only if its id
      is not already present)
    - existing scripts without a path are left untouched

    Last writer wins: the freshly scanned script is always authoritative,
    there is no field-level merge.

    Args:
        existing: Current collection, in display order
        incoming: Scripts produced by a folder scan

    Returns:
        New list; neither input is modified
    """
    result: List[ScriptItem] = list(existing)
    position_by_path: Dict[str, int] = {}
    for index, script in enumerate(result):
        if script.file_path and script.file_path not in position_by_path:
            position_by_path[script.file_path] = index

    for script in incoming:
        if not script.file_path:
            # scans always set a path; a path-less script is only added once
            if all(current.id != script.id for current in result):
                result.append(script)
            continue
        index = position_by_path.get(script.file_path)
        if index is not None:
            result[index] = script
        else:
            position_by_path[script.file_path] = len(result)
            result.append(script)

    return result


@dataclass(frozen=True)
class FilenameConflict:
    """Scripts with different ids that would be written to the same file."""

    filename: str
    script_ids: Tuple[str, ...]


def find_filename_conflicts(scripts: Sequence[ScriptItem]) -> List[FilenameConflict]:
    """Find derived filenames claimed by more than one script id.

    Filenames are compared exactly, matching how the scanner pairs metadata
    records with files.
    """
    ids_by_filename: Dict[str, List[str]] = {}
    for script in scripts:
        ids = ids_by_filename.setdefault(filename_for(script), [])
        if script.id not in ids:
            ids.append(script.id)

    return [
        FilenameConflict(filename=filename, script_ids=tuple(ids))
        for filename, ids in ids_by_filename.items()
        if len(ids) > 1
    ]
