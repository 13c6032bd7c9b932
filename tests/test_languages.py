"""Tests for language detection and filename derivation."""

from types import SimpleNamespace

import pytest

from script_vault.languages import (
    LANGUAGE_MAP,
    file_stem,
    filename_for,
    is_supported_filename,
    language_from_filename,
    sanitize_script_name,
)


def named(name, language="javascript"):
    return SimpleNamespace(name=name, language=language)


@pytest.mark.parametrize("language", sorted(LANGUAGE_MAP))
def test_extension_round_trip(language):
    """Every language maps to a unique extension that maps back to it."""
    filename = filename_for(named("example", language))
    assert language_from_filename(filename) == language


def test_extensions_are_unique():
    extensions = [info.ext for info in LANGUAGE_MAP.values()]
    assert len(extensions) == len(set(extensions))


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("deploy.SH", "bash"),
        ("query.Sql", "sql"),
        ("config.yml", "yaml"),
        ("config.yaml", "javascript"),
        ("notes.txt", "javascript"),
        ("Makefile", "javascript"),
        ("component.TS", "typescript"),
    ],
)
def test_language_from_filename(filename, expected):
    assert language_from_filename(filename) == expected


def test_language_from_filename_custom_default():
    assert language_from_filename("README", default="markdown") == "markdown"


@pytest.mark.parametrize(
    "name,language,expected",
    [
        ("Old Name", "javascript", "Old-Name.js"),
        ("  padded   name  ", "python", "padded-name.py"),
        ("What? Now!", "python", "What_-Now_.py"),
        ("semi;colon/slash", "bash", "semi_colon_slash.sh"),
        ("keep-this_and.dots", "go", "keep-this_and.dots.go"),
        ("", "rust", "script.rs"),
        ("   ", "bash", "script.sh"),
        ("???", "python", "script.py"),
        ("tab\tseparated", "css", "tab_separated.css"),
    ],
)
def test_filename_for(name, language, expected):
    assert filename_for(named(name, language)) == expected


def test_filename_for_is_total():
    """Odd inputs still produce a filename with a known extension."""
    for item in [
        named(None),
        named("x", "cobol"),
        SimpleNamespace(),
        named("été \U0001f600"),
    ]:
        filename = filename_for(item)
        assert is_supported_filename(filename)


def test_sanitize_script_name_non_ascii():
    assert sanitize_script_name("café menu") == "caf_-menu"


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("deploy.sh", "deploy"),
        ("archive.tar.gz", "archive.tar"),
        ("Makefile", "Makefile"),
        ("Old-Name.js", "Old-Name"),
    ],
)
def test_file_stem(filename, expected):
    assert file_stem(filename) == expected


def test_is_supported_filename():
    assert is_supported_filename("a.JS")
    assert is_supported_filename("style.css")
    assert not is_supported_filename("photo.png")
    assert not is_supported_filename("README")
