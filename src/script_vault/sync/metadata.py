"""Side-car metadata document stored next to the scripts in a linked folder.

The document keeps the fields that cannot be recovered from a file alone
(id, display name, description, timestamps) so they survive plain file edits
and moving the folder between machines. It is regenerated from scratch on
every write-back and never carries API keys.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from script_vault.languages import filename_for
from script_vault.models import ScriptItem, UtcDatetime, VaultSettings
from script_vault.utils import now_utc

APP_NAME = "Script Vault"
APP_VERSION = 1


class MetadataModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class MetadataRecord(MetadataModel):
    """One script as described by the metadata document.

    Every field is optional: documents may be hand-edited or written by older
    clients, and missing fields fall back to values derived from the file.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    filename: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None
    content_hash: Optional[str] = None
    disk_modified_at: Optional[UtcDatetime] = None

    @property
    def target_filename(self) -> Optional[str]:
        """Filename this record describes; older documents only stored the name."""
        return self.filename or self.name or None


class AppInfo(MetadataModel):
    name: str = APP_NAME
    version: int = APP_VERSION


class MetadataSettings(MetadataModel):
    """Redacted settings echo: provider preference and watermark only."""

    preferred_provider: Optional[str] = None
    last_sync_at: Optional[UtcDatetime] = None


class MetadataDocument(MetadataModel):
    exported_at: UtcDatetime = Field(default_factory=now_utc)
    count: int = 0
    languages: List[str] = Field(default_factory=list)
    items: List[MetadataRecord] = Field(default_factory=list)
    app: AppInfo = Field(default_factory=AppInfo)
    settings: Optional[MetadataSettings] = None

    def by_filename(self) -> Dict[str, MetadataRecord]:
        """Index records by the filename they describe; the first record wins."""
        index: Dict[str, MetadataRecord] = {}
        for record in self.items:
            filename = record.target_filename
            if filename and filename not in index:
                index[filename] = record
        return index

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=2)


def parse_metadata_document(text: str) -> Optional[MetadataDocument]:
    """Parse a metadata document leniently.

    Returns None when the text is not a JSON object. Records that are not
    objects or fail validation are dropped individually so one bad entry does
    not hide the rest.
    """
    try:
        raw = json.loads(text)
    except ValueError as e:
        logger.debug(f"Ignoring malformed metadata document: {e}")
        return None

    if not isinstance(raw, dict):
        logger.debug("Ignoring metadata document that is not a JSON object")
        return None

    raw_items = raw.get("items")
    records: List[MetadataRecord] = []
    if isinstance(raw_items, list):
        for position, raw_item in enumerate(raw_items):
            if not isinstance(raw_item, dict):
                continue
            try:
                records.append(MetadataRecord.model_validate(raw_item))
            except ValidationError as e:
                logger.debug(f"Skipping metadata record {position}: {e.error_count()} invalid fields")

    settings: Optional[MetadataSettings] = None
    if isinstance(raw.get("settings"), dict):
        try:
            settings = MetadataSettings.model_validate(raw["settings"])
        except ValidationError:
            settings = None

    header: Dict[str, Any] = {}
    try:
        header = MetadataDocument.model_validate(
            {key: raw[key] for key in ("exportedAt", "count", "languages", "app") if key in raw}
        ).model_dump()
    except ValidationError:
        logger.debug("Metadata document header is invalid, keeping records only")

    header.pop("items", None)
    header.pop("settings", None)
    return MetadataDocument(**header, items=records, settings=settings)


def build_metadata_document(
    scripts: Sequence[ScriptItem],
    settings: Optional[VaultSettings] = None,
    exported_at: Optional[datetime] = None,
) -> MetadataDocument:
    """Build a fresh metadata document describing the given scripts."""
    languages: List[str] = []
    for script in scripts:
        if script.language not in languages:
            languages.append(script.language)

    items = [
        MetadataRecord(
            id=script.id,
            name=script.name,
            description=script.description,
            language=script.language,
            filename=script.file_path or filename_for(script),
            created_at=script.created_at,
            updated_at=script.updated_at,
            content_hash=script.content_hash,
            disk_modified_at=script.disk_modified_at,
        )
        for script in scripts
    ]

    redacted = None
    if settings is not None:
        redacted = MetadataSettings(
            preferred_provider=settings.preferred_provider,
            last_sync_at=settings.last_sync_at,
        )

    return MetadataDocument(
        exported_at=exported_at or now_utc(),
        count=len(scripts),
        languages=languages,
        items=items,
        app=AppInfo(),
        settings=redacted,
    )
