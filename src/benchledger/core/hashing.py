"""Shared hashing utilities for benchledger.

This module provides canonicalization of nested configuration values and
SHA256 hashing functions used for fingerprinting task sets and runs.

Design goals:
- Deterministic: same logical input always produces same hash
- Canonical JSON: recursively sorted keys, no extra whitespace
- Full SHA256 where collisions matter; 16-char short form for display
- Host independent: paths are hashed in POSIX form only
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any

from benchledger.core.exceptions import CanonicalizationError

SHORT_HASH_LENGTH = 16

_SCALARS = (str, int, float, bool, type(None))


def canonicalize(value: Any) -> Any:
    """Return a structurally equal copy of value with all mapping keys sorted.

    Mappings are rebuilt with their keys in lexicographic order, recursively.
    Sequences keep their element order. Scalars are returned as-is.

    Args:
        value: A JSON-like value (dict/list/tuple/str/int/float/bool/None).

    Returns:
        The canonical form. Tuples become lists.

    Raises:
        CanonicalizationError: If value (or anything nested in it) is not a
            JSON-like shape, or a mapping key is not a string.

    Example:
        >>> canonicalize({"b": [{"y": 1, "x": 2}], "a": None})
        {'a': None, 'b': [{'x': 2, 'y': 1}]}
    """
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                raise CanonicalizationError(f"Mapping keys must be strings, got {type(key).__name__}: {key!r}")
        return {key: canonicalize(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    raise CanonicalizationError(f"Cannot canonicalize value of type {type(value).__name__}")


def canonical_json(data: Any) -> str:
    """
    Stable JSON serialization used for fingerprints.

    Args:
        data: JSON-like data (dict/list/str/int/float/bool/None).

    Returns:
        Canonical JSON string with sorted keys and no extra whitespace.

    Example:
        >>> canonical_json({"b": 1, "a": 2})
        '{"a":2,"b":1}'
    """
    return json.dumps(canonicalize(data), separators=(",", ":"), ensure_ascii=False)


def sha256_hex(text: str) -> str:
    """
    Compute full SHA256 hex digest.

    Args:
        text: Input string to hash.

    Returns:
        64-character hexadecimal SHA256 digest.

    Example:
        >>> len(sha256_hex("hello"))
        64
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sha256_short(text: str, length: int = SHORT_HASH_LENGTH) -> str:
    """
    Compute truncated SHA256 hex digest for display.

    Args:
        text: Input string to hash.
        length: Number of characters to return (default 16).

    Returns:
        Truncated hexadecimal SHA256 digest.
    """
    return sha256_hex(text)[:length]


def hash_bytes(content: bytes | str, length: int | None = SHORT_HASH_LENGTH) -> str:
    """
    Hash raw content.

    Args:
        content: Bytes, or text encoded as UTF-8.
        length: Number of hex characters to keep. None keeps the full digest.

    Returns:
        Hexadecimal SHA256 digest, truncated to length.

    Example:
        >>> len(hash_bytes(b"abc"))
        16
        >>> len(hash_bytes(b"abc", length=None))
        64
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    digest = hashlib.sha256(content).hexdigest()
    return digest if length is None else digest[:length]


def hash_manifest(text: str) -> str:
    """
    Hash manifest content, ignoring surrounding whitespace.

    Args:
        text: Manifest content.

    Returns:
        16-character hexadecimal digest.

    Example:
        >>> hash_manifest("  id: T1\\n") == hash_manifest("id: T1")
        True
    """
    return hash_bytes(text.strip())


def compute_hash(data: Any) -> str:
    """
    Compute full SHA256 hash of JSON-like data.

    Args:
        data: JSON-like data structure.

    Returns:
        64-character hexadecimal SHA256 digest.
    """
    return sha256_hex(canonical_json(data))


def compute_hash_short(data: Any, length: int = SHORT_HASH_LENGTH) -> str:
    """
    Compute truncated SHA256 hash of JSON-like data.

    Args:
        data: JSON-like data structure.
        length: Number of characters to return (default 16).

    Returns:
        Truncated hexadecimal SHA256 digest.
    """
    return compute_hash(data)[:length]


def shorten_hash(full_hash: str, length: int = 8) -> str:
    """Shorten a hash for display."""
    return full_hash[:length]


def normalize_path(path: str | PurePath) -> str:
    """Return path with forward slashes, whatever the host separator.

    Example:
        >>> normalize_path("tests\\\\al\\\\easy\\\\T1.al")
        'tests/al/easy/T1.al'
    """
    return str(path).replace("\\", "/")


@dataclass
class HashedFileInfo:
    """Hash of one file's content.

    Attributes:
        path: File path (normalized to forward slashes).
        hash: 16-character content digest.
        size: File size in bytes.
    """

    path: str
    hash: str
    size: int


def hash_file(path: str | Path) -> HashedFileInfo | None:
    """
    Hash a file's trimmed text content.

    Bytes that are not valid UTF-8 are replaced rather than rejected.

    Args:
        path: Path to the file.

    Returns:
        HashedFileInfo, or None if the file does not exist.
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8", errors="replace")
        size = file_path.stat().st_size
    except FileNotFoundError:
        return None
    return HashedFileInfo(path=normalize_path(file_path), hash=hash_manifest(content), size=size)
