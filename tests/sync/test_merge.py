"""Tests for path-keyed merging and filename conflict detection."""

from script_vault.models import ScriptItem
from script_vault.sync.merge import find_filename_conflicts, merge_scripts


def script(name, path=None, **kwargs):
    return ScriptItem(name=name, file_path=path, **kwargs)


def test_matched_items_replace_in_place():
    a, b, c = script("a", "a.js"), script("b", "b.js"), script("c", "c.js")
    new_b = script("b2", "b.js", content="changed")

    merged = merge_scripts([a, b, c], [new_b])

    assert merged == [a, new_b, c]


def test_unmatched_items_are_appended():
    a = script("a", "a.js")
    d = script("d", "d.js")

    assert merge_scripts([a], [d]) == [a, d]


def test_three_item_merge():
    """One updated, one untouched, one new from disk."""
    local_only = script("draft")
    first = script("first", "first.js", content="v1")
    second = script("second", "second.js")
    updated_first = first.model_copy(update={"content": "v2"})
    third = script("third", "third.js")

    merged = merge_scripts([local_only, first, second], [updated_first, third])

    assert merged == [local_only, updated_first, second, third]


def test_path_less_existing_items_preserved_in_order():
    drafts = [script("x"), script("y")]
    on_disk = script("z", "z.js")

    merged = merge_scripts([drafts[0], on_disk, drafts[1]], [on_disk.model_copy(update={"content": "new"})])

    assert merged[0] is drafts[0]
    assert merged[2] is drafts[1]
    assert merged[1].content == "new"


def test_merge_is_idempotent():
    existing = [script("a", "a.js"), script("draft")]
    incoming = [script("a2", "a.js"), script("b", "b.js"), script("loose")]

    once = merge_scripts(existing, incoming)
    twice = merge_scripts(once, incoming)

    assert once == twice


def test_merge_does_not_modify_inputs():
    existing = [script("a", "a.js")]
    incoming = [script("b", "b.js")]

    merge_scripts(existing, incoming)

    assert len(existing) == 1
    assert len(incoming) == 1


def test_merge_into_empty():
    incoming = [script("a", "a.js"), script("b", "b.js")]

    assert merge_scripts([], incoming) == incoming


def test_no_conflicts_for_distinct_names():
    assert find_filename_conflicts([script("a"), script("b"), script("a", language="python")]) == []


def test_conflict_detected_for_same_derived_filename():
    first = script("My Script")
    second = script("My  Script")
    third = script("other")

    conflicts = find_filename_conflicts([first, second, third])

    assert len(conflicts) == 1
    assert conflicts[0].filename == "My-Script.js"
    assert conflicts[0].script_ids == (first.id, second.id)


def test_same_id_twice_is_not_a_conflict():
    item = script("a")

    assert find_filename_conflicts([item, item]) == []


def test_conflict_on_fallback_filename():
    conflicts = find_filename_conflicts([script(""), script("???")])

    assert [conflict.filename for conflict in conflicts] == ["script.js"]
