"""Pydantic models for scripts and the vault state.

Models serialize with camelCase keys so documents written by other Script
Vault clients (local state, metadata side-cars) stay interchangeable.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from script_vault.languages import DEFAULT_LANGUAGE, LanguageKey, is_known_language
from script_vault.utils import generate_id, now_utc, to_utc

Provider = Literal["gemini", "openai", "claude"]

UtcDatetime = Annotated[datetime, AfterValidator(to_utc)]


def _coerce_language(value: Any) -> Any:
    """Unknown language tags from older documents become the default language."""
    if isinstance(value, str) and not is_known_language(value):
        return DEFAULT_LANGUAGE
    return value


Language = Annotated[LanguageKey, BeforeValidator(_coerce_language)]


class VaultModel(BaseModel):
    """Shared configuration for vault models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ScriptItem(VaultModel):
    """A named, typed code snippet - the unit of synchronization.

    ``file_path``, ``content_hash`` and ``disk_modified_at`` are only set once
    the script has been written to or read from a linked folder.
    """

    id: str = Field(default_factory=generate_id)
    name: str = ""
    description: str = ""
    language: Language = DEFAULT_LANGUAGE
    content: str = ""
    created_at: UtcDatetime = Field(default_factory=now_utc)
    updated_at: UtcDatetime = Field(default_factory=now_utc)

    # sync bookkeeping
    file_path: Optional[str] = None
    content_hash: Optional[str] = None
    disk_modified_at: Optional[UtcDatetime] = None

    @property
    def is_synced(self) -> bool:
        return self.file_path is not None


class VaultSettings(VaultModel):
    """User settings stored with the vault state.

    API keys live here but must never leave the local state file.
    """

    preferred_provider: Provider = "gemini"
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    claude_api_key: Optional[str] = None
    last_sync_at: Optional[UtcDatetime] = None

    def with_last_sync(self, instant: datetime) -> "VaultSettings":
        return self.model_copy(update={"last_sync_at": to_utc(instant)})


class VaultState(VaultModel):
    """Root aggregate: the ordered scripts, the selection and the settings."""

    scripts: List[ScriptItem] = Field(default_factory=list)
    selected_id: Optional[str] = None
    settings: VaultSettings = Field(default_factory=VaultSettings)

    def find(self, script_id: Optional[str]) -> Optional[ScriptItem]:
        if script_id is None:
            return None
        return next((script for script in self.scripts if script.id == script_id), None)

    @property
    def selected(self) -> Optional[ScriptItem]:
        return self.find(self.selected_id)

    @property
    def selection_is_valid(self) -> bool:
        return self.selected_id is None or self.selected is not None
