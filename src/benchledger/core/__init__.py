"""Core utilities for benchledger: hashing, configuration and errors."""

from __future__ import annotations

from benchledger.core.config import FingerprintConfig, Settings, StorageConfig
from benchledger.core.exceptions import (
    BenchLedgerError,
    CanonicalizationError,
    ConfigurationError,
    ConflictError,
    DuplicateResultError,
    DuplicateRunError,
    MalformedInputError,
    MalformedTaskPathError,
    RunNotFoundError,
    StorageNotOpenError,
)
from benchledger.core.hashing import (
    HashedFileInfo,
    canonical_json,
    canonicalize,
    compute_hash,
    compute_hash_short,
    hash_bytes,
    hash_file,
    hash_manifest,
    shorten_hash,
)

__all__ = [
    "BenchLedgerError",
    "CanonicalizationError",
    "ConfigurationError",
    "ConflictError",
    "DuplicateResultError",
    "DuplicateRunError",
    "FingerprintConfig",
    "HashedFileInfo",
    "MalformedInputError",
    "MalformedTaskPathError",
    "RunNotFoundError",
    "Settings",
    "StorageConfig",
    "StorageNotOpenError",
    "canonical_json",
    "canonicalize",
    "compute_hash",
    "compute_hash_short",
    "hash_bytes",
    "hash_file",
    "hash_manifest",
    "shorten_hash",
]
