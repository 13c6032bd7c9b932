"""Language tags, file extensions and filename derivation."""

import re
from dataclasses import dataclass
from typing import Dict, Literal, Optional, Protocol

LanguageKey = Literal[
    "javascript",
    "typescript",
    "python",
    "bash",
    "json",
    "sql",
    "go",
    "java",
    "csharp",
    "cpp",
    "html",
    "css",
    "yaml",
    "markdown",
    "ruby",
    "rust",
    "php",
]

DEFAULT_LANGUAGE: LanguageKey = "javascript"
FALLBACK_FILENAME = "script"


@dataclass(frozen=True)
class LanguageInfo:
    """Display label, editor mode and file extension for a language tag."""

    label: str
    editor_mode: str
    ext: str


LANGUAGE_MAP: Dict[str, LanguageInfo] = {
    "javascript": LanguageInfo("JavaScript", "javascript", ".js"),
    "typescript": LanguageInfo("TypeScript", "typescript", ".ts"),
    "python": LanguageInfo("Python", "python", ".py"),
    "bash": LanguageInfo("Bash", "shell", ".sh"),
    "json": LanguageInfo("JSON", "json", ".json"),
    "sql": LanguageInfo("SQL", "sql", ".sql"),
    "go": LanguageInfo("Go", "go", ".go"),
    "java": LanguageInfo("Java", "java", ".java"),
    "csharp": LanguageInfo("C#", "csharp", ".cs"),
    "cpp": LanguageInfo("C++", "cpp", ".cpp"),
    "html": LanguageInfo("HTML", "html", ".html"),
    "css": LanguageInfo("CSS", "css", ".css"),
    "yaml": LanguageInfo("YAML", "yaml", ".yml"),
    "markdown": LanguageInfo("Markdown", "markdown", ".md"),
    "ruby": LanguageInfo("Ruby", "ruby", ".rb"),
    "rust": LanguageInfo("Rust", "rust", ".rs"),
    "php": LanguageInfo("PHP", "php", ".php"),
}

_EXT_TO_LANGUAGE: Dict[str, str] = {}
for _key, _info in LANGUAGE_MAP.items():
    # first tag wins if two languages ever share an extension
    _EXT_TO_LANGUAGE.setdefault(_info.ext.lower(), _key)

SUPPORTED_EXTENSIONS = frozenset(_EXT_TO_LANGUAGE)

_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9\-_. ]")
_WHITESPACE_RUN = re.compile(r"\s+")


class Named(Protocol):
    """Anything with a display name and a language tag."""

    name: str
    language: str


def file_extension(filename: str) -> str:
    """Return the lower-cased extension including the dot, or '' when there is none."""
    dot = filename.rfind(".")
    return filename[dot:].lower() if dot >= 0 else ""


def file_stem(filename: str) -> str:
    """Strip the last extension from a filename.

    Examples:
        >>> file_stem("deploy.sh")
        'deploy'
        >>> file_stem("archive.tar.gz")
        'archive.tar'
        >>> file_stem("Makefile")
        'Makefile'
    """
    return re.sub(r"\.[^.]+$", "", filename)


def is_known_language(value: Optional[str]) -> bool:
    return value is not None and value in LANGUAGE_MAP


def is_supported_filename(filename: str) -> bool:
    """Check whether the filename has one of the supported script extensions."""
    return file_extension(filename) in SUPPORTED_EXTENSIONS


def language_from_filename(filename: str, default: str = DEFAULT_LANGUAGE) -> str:
    """Detect the language tag from a filename's extension (case-insensitive).

    Unmatched or extensionless names fall back to ``default``.
    """
    return _EXT_TO_LANGUAGE.get(file_extension(filename), default)


def extension_for(language: str) -> str:
    """Extension for a language tag; unknown tags use the default language's extension."""
    info = LANGUAGE_MAP.get(language) or LANGUAGE_MAP[DEFAULT_LANGUAGE]
    return info.ext


def sanitize_script_name(name: Optional[str]) -> str:
    """Turn a display name into a filesystem-safe filename stem.

    Characters outside ``[A-Za-z0-9-_. ]`` become ``_`` and whitespace runs
    become a single ``-``. Names that are empty or made only of disallowed
    characters fall back to ``"script"``.
    """
    trimmed = (name or "").strip()
    if not _DISALLOWED_CHARS.sub("", trimmed):
        return FALLBACK_FILENAME
    safe = _DISALLOWED_CHARS.sub("_", trimmed)
    safe = _WHITESPACE_RUN.sub("-", safe)
    return safe or FALLBACK_FILENAME


def filename_for(item: Named) -> str:
    """Derive the on-disk filename for a script from its name and language.

    Never raises: this runs on every write and every conflict check.

    Examples:
        >>> from types import SimpleNamespace
        >>> filename_for(SimpleNamespace(name="Old Name", language="javascript"))
        'Old-Name.js'
        >>> filename_for(SimpleNamespace(name="What? Now!", language="python"))
        'What_-Now_.py'
        >>> filename_for(SimpleNamespace(name="???", language="python"))
        'script.py'
        >>> filename_for(SimpleNamespace(name="  ", language="bash"))
        'script.sh'
    """
    return f"{sanitize_script_name(getattr(item, 'name', ''))}{extension_for(getattr(item, 'language', ''))}"
