"""Field precedence when building a script from a file on disk.

A script read from a linked folder can take its fields from three places:
the metadata record for its filename, the script already held in memory for
that filename, and defaults derived from the filename itself. Each field has
one explicit precedence order, kept here as small pure functions.

    field        order
    id           record -> previous -> new id
    name         record -> previous -> file stem
    description  record -> previous -> ""
    language     record -> previous -> extension
    created_at   record -> previous -> now
    updated_at   record (if it describes this exact content) -> change instant -> now
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TypeVar

from script_vault.languages import DEFAULT_LANGUAGE, file_stem, is_known_language, language_from_filename
from script_vault.models import ScriptItem
from script_vault.sync.metadata import MetadataRecord
from script_vault.utils import generate_id

T = TypeVar("T")


def first_present(*candidates: Optional[T], default: T) -> T:
    """Return the first candidate that is neither None nor an empty string."""
    for candidate in candidates:
        if candidate is None or candidate == "":
            continue
        return candidate
    return default


def resolve_id(record: Optional[MetadataRecord], previous: Optional[ScriptItem]) -> str:
    return first_present(
        record.id if record else None,
        previous.id if previous else None,
        default="",
    ) or generate_id()


def resolve_name(
    filename: str, record: Optional[MetadataRecord], previous: Optional[ScriptItem]
) -> str:
    return first_present(
        record.name if record else None,
        previous.name if previous else None,
        default=file_stem(filename),
    )


def resolve_description(record: Optional[MetadataRecord], previous: Optional[ScriptItem]) -> str:
    return first_present(
        record.description if record else None,
        previous.description if previous else None,
        default="",
    )


def resolve_language(
    filename: str,
    record: Optional[MetadataRecord],
    previous: Optional[ScriptItem],
    default_language: str = DEFAULT_LANGUAGE,
) -> str:
    record_language = record.language if record and is_known_language(record.language) else None
    return first_present(
        record_language,
        previous.language if previous else None,
        default=language_from_filename(filename, default_language),
    )


def resolve_created_at(
    record: Optional[MetadataRecord], previous: Optional[ScriptItem], now: datetime
) -> datetime:
    return first_present(
        record.created_at if record else None,
        previous.created_at if previous else None,
        default=now,
    )


def resolve_updated_at(
    record: Optional[MetadataRecord],
    content_hash: str,
    changed_at: Optional[datetime],
    now: datetime,
) -> datetime:
    """Pick the last-updated instant for content just read from disk.

    ``changed_at`` is given for incremental scans, where the file is known to
    have changed since the last sync. A record only wins then if it already
    describes the new content.
    """
    if record and record.updated_at:
        if changed_at is None or record.content_hash == content_hash:
            return record.updated_at
    return changed_at or now


@dataclass(frozen=True)
class ResolvedFields:
    id: str
    name: str
    description: str
    language: str
    created_at: datetime
    updated_at: datetime


def resolve_fields(
    filename: str,
    record: Optional[MetadataRecord],
    previous: Optional[ScriptItem],
    *,
    content_hash: str,
    now: datetime,
    changed_at: Optional[datetime] = None,
    default_language: str = DEFAULT_LANGUAGE,
) -> ResolvedFields:
    """Resolve every logical field of a script read from ``filename``."""
    return ResolvedFields(
        id=resolve_id(record, previous),
        name=resolve_name(filename, record, previous),
        description=resolve_description(record, previous),
        language=resolve_language(filename, record, previous, default_language),
        created_at=resolve_created_at(record, previous, now),
        updated_at=resolve_updated_at(record, content_hash, changed_at, now),
    )
