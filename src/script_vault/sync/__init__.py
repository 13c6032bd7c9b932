"""Folder synchronization engine.

Rather than importing from individual modules, callers can import the public
sync API from script_vault.sync.
"""

from script_vault.sync.merge import FilenameConflict, find_filename_conflicts, merge_scripts
from script_vault.sync.metadata import (
    MetadataDocument,
    MetadataRecord,
    build_metadata_document,
    parse_metadata_document,
)
from script_vault.sync.scanner import DirectoryScanner
from script_vault.sync.sync_service import IncrementalScan, SyncService

__all__ = [
    "DirectoryScanner",
    "FilenameConflict",
    "IncrementalScan",
    "MetadataDocument",
    "MetadataRecord",
    "SyncService",
    "build_metadata_document",
    "find_filename_conflicts",
    "merge_scripts",
    "parse_metadata_document",
]
