"""Utilities for content fingerprints and text/binary classification."""

import hashlib

BINARY_SAMPLE_CHARS = 2000
BINARY_NON_PRINTABLE_RATIO = 0.2

# application/* types that carry source text
TEXT_APPLICATION_TYPES = frozenset(
    {
        "application/json",
        "application/javascript",
        "application/ecmascript",
        "application/typescript",
        "application/x-javascript",
        "application/x-typescript",
        "application/x-sh",
        "application/x-shellscript",
        "application/x-httpd-php",
        "application/x-php",
        "application/x-ruby",
        "application/x-python",
        "application/x-python-code",
        "application/sql",
        "application/xml",
        "application/yaml",
        "application/x-yaml",
        "application/toml",
    }
)

_REPLACEMENT_CHAR = "�"
_ALLOWED_CONTROL = {"\t", "\n", "\r"}


def compute_checksum(content: str) -> str:
    """Compute the SHA-256 fingerprint of text content.

    Args:
        content: Text to hash; encoded as UTF-8 first

    Returns:
        64 character lowercase hex digest
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_text_like_mime(mime_type: str | None) -> bool:
    """Check whether a declared content type can hold source text.

    An empty or missing type counts as text: many handles leave it blank.
    """
    if not mime_type:
        return True
    mime = mime_type.split(";", 1)[0].strip().lower()
    if mime.startswith("text/"):
        return True
    if mime.endswith("+json") or mime.endswith("+xml"):
        return True
    return mime in TEXT_APPLICATION_TYPES


def _is_printable(char: str) -> bool:
    if char in _ALLOWED_CONTROL:
        return True
    if char == _REPLACEMENT_CHAR:
        # produced by lossy decoding of invalid UTF-8
        return False
    return char.isprintable()


def is_probably_binary(
    content: str,
    sample_chars: int = BINARY_SAMPLE_CHARS,
    max_ratio: float = BINARY_NON_PRINTABLE_RATIO,
) -> bool:
    """Heuristically decide whether decoded content is really binary data.

    Content is binary when it contains a NUL character, or when more than
    ``max_ratio`` of the first ``sample_chars`` characters are non-printable.

    Examples:
        >>> is_probably_binary("console.log(1)\\n")
        False
        >>> is_probably_binary("abc\\x00def")
        True
    """
    if "\x00" in content:
        return True
    sample = content[:sample_chars]
    if not sample:
        return False
    non_printable = sum(1 for char in sample if not _is_printable(char))
    return non_printable / len(sample) > max_ratio
