from __future__ import annotations

import hashlib
import re
from pathlib import Path

from ..errors import InvalidInput

HASH_PREFIX = "0x"
DIGEST_HEX_LEN = 64

# Files with these suffixes are hashed as canonical text, everything else as raw bytes
TEXT_SUFFIXES = frozenset({".txt", ".md", ".json", ".js", ".ts", ".html", ".css", ".py", ".rst"})

_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_HEX_RE = re.compile(r"^[0-9a-f]{64}$")


def canonicalize_text(text: str) -> bytes:
    """Normalize text so equivalent documents hash identically.

    Line endings become ``\\n``, trailing spaces/tabs are removed from every line,
    trailing blank lines are dropped and exactly one final newline is appended.
    Applying it to its own output is a no-op.
    """
    if not isinstance(text, str):
        raise InvalidInput(f"canonicalize_text expects str, got {type(text).__name__}")
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _TRAILING_WS_RE.sub("", normalized)
    normalized = normalized.rstrip("\n")
    return (normalized + "\n").encode("utf-8")


def hash_bytes(data: bytes) -> str:
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(canonicalize_text(text))


def hash_file(path: Path) -> str:
    raw = path.read_bytes()
    if path.suffix.lower() in TEXT_SUFFIXES:
        try:
            return hash_text(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise InvalidInput(f"{path} is not valid UTF-8 text: {e}") from e
    return hash_bytes(raw)


def strip_prefix(value: str) -> str:
    """Return the bare lowercase hex of a digest given with or without ``0x``."""
    v = value.strip()
    if v[:2].lower() == HASH_PREFIX:
        v = v[2:]
    return v.lower()


def normalize_hash(value: str) -> str:
    """Validate a content digest and return it in ``0x``-prefixed lowercase form."""
    bare = strip_prefix(value)
    if not _HEX_RE.match(bare):
        raise InvalidInput(f"Not a 32-byte hex digest: {value!r}")
    return HASH_PREFIX + bare


def digest_bytes(value: str) -> bytes:
    return bytes.fromhex(strip_prefix(normalize_hash(value)))


def compound_digest(content_digest: str, process_digest: str) -> str:
    """Bind a content digest to a process digest.

    The two prefixed hex strings are concatenated and hashed, matching the registry's
    ``compoundHash`` computation.
    """
    return hash_bytes((content_digest + process_digest).encode("utf-8"))


__all__ = [
    "HASH_PREFIX",
    "canonicalize_text",
    "hash_bytes",
    "hash_text",
    "hash_file",
    "strip_prefix",
    "normalize_hash",
    "digest_bytes",
    "compound_digest",
]
