"""Tests for the side-car metadata document."""

import json
from datetime import datetime, timezone

from script_vault.models import ScriptItem, VaultSettings
from script_vault.sync.metadata import (
    APP_NAME,
    MetadataDocument,
    build_metadata_document,
    parse_metadata_document,
)

EXPORTED_AT = datetime(2024, 3, 1, tzinfo=timezone.utc)


def test_build_document_fields():
    scripts = [
        ScriptItem(name="One", language="python", file_path="One.py", content_hash="h1"),
        ScriptItem(name="Two", language="bash"),
        ScriptItem(name="Three", language="python"),
    ]

    document = build_metadata_document(scripts, exported_at=EXPORTED_AT)

    assert document.count == 3
    assert document.languages == ["python", "bash"]
    assert [record.filename for record in document.items] == ["One.py", "Two.sh", "Three.py"]
    assert document.items[0].content_hash == "h1"
    assert document.app.name == APP_NAME
    assert document.app.version == 1


def test_document_never_contains_api_keys():
    settings = VaultSettings(
        preferred_provider="openai",
        gemini_api_key="g-secret",
        openai_api_key="o-secret",
        claude_api_key="c-secret",
        last_sync_at=EXPORTED_AT,
    )

    text = build_metadata_document([ScriptItem(name="a")], settings).to_json()
    raw = json.loads(text)

    assert "secret" not in text
    assert raw["settings"] == {"preferredProvider": "openai", "lastSyncAt": "2024-03-01T00:00:00Z"}


def test_document_serializes_camel_case():
    script = ScriptItem(name="a", file_path="a.js", disk_modified_at=EXPORTED_AT)

    raw = json.loads(build_metadata_document([script], exported_at=EXPORTED_AT).to_json())

    assert set(raw) == {"exportedAt", "count", "languages", "items", "app", "settings"}
    assert raw["app"] == {"name": "Script Vault", "version": 1}
    item = raw["items"][0]
    assert item["filename"] == "a.js"
    assert item["diskModifiedAt"] == "2024-03-01T00:00:00Z"
    assert {"id", "name", "description", "language", "createdAt", "updatedAt", "contentHash"} <= set(item)


def test_parse_round_trips_built_document():
    scripts = [ScriptItem(name="a", description="first"), ScriptItem(name="b", language="go")]
    built = build_metadata_document(scripts, exported_at=EXPORTED_AT)

    parsed = parse_metadata_document(built.to_json())

    assert parsed == built


def test_parse_rejects_malformed_json():
    assert parse_metadata_document("{nope") is None
    assert parse_metadata_document("") is None


def test_parse_rejects_non_object():
    assert parse_metadata_document("[]") is None
    assert parse_metadata_document('"text"') is None


def test_parse_non_list_items_yields_no_records():
    document = parse_metadata_document(json.dumps({"items": {"id": "1"}}))

    assert document is not None
    assert document.items == []


def test_parse_skips_bad_records_individually():
    raw = {
        "items": [
            {"id": "good", "filename": "a.js"},
            "not an object",
            {"id": "bad-date", "filename": "b.js", "createdAt": "yesterday-ish"},
            {"id": "also-good", "name": "c.js"},
        ]
    }

    document = parse_metadata_document(json.dumps(raw))

    assert [record.id for record in document.items] == ["good", "also-good"]


def test_parse_tolerates_bad_header():
    raw = {"exportedAt": "not a date", "count": "many", "items": [{"id": "1"}]}

    document = parse_metadata_document(json.dumps(raw))

    assert [record.id for record in document.items] == ["1"]


def test_target_filename_falls_back_to_name():
    document = parse_metadata_document(json.dumps({"items": [{"name": "legacy.js"}]}))

    assert document.items[0].target_filename == "legacy.js"


def test_by_filename_first_record_wins():
    document = MetadataDocument.model_validate(
        {"items": [{"id": "1", "filename": "a.js"}, {"id": "2", "filename": "a.js"}]}
    )

    assert document.by_filename()["a.js"].id == "1"
