"""Fingerprinting of task corpora and experiment configurations.

Example:
    >>> from benchledger.fingerprint import hash_task_set
    >>> result = hash_task_set(sorted(Path("tasks").glob("*/*.yml")), project_root=".")
    >>> run.task_set_hash = result.hash
"""

from __future__ import annotations

from benchledger.fingerprint.config_hash import generate_config_hash, generate_task_set_hash
from benchledger.fingerprint.models import (
    MISSING_HASH,
    ConfigHashInput,
    ExecutionParams,
    TaskContentHashInfo,
    TaskManifestRef,
    TaskSetHashResult,
    VariantSpec,
)
from benchledger.fingerprint.tasks import (
    extract_difficulty,
    extract_task_id,
    hash_task_content,
    hash_task_set,
)

__all__ = [
    "MISSING_HASH",
    "ConfigHashInput",
    "ExecutionParams",
    "TaskContentHashInfo",
    "TaskManifestRef",
    "TaskSetHashResult",
    "VariantSpec",
    "extract_difficulty",
    "extract_task_id",
    "generate_config_hash",
    "generate_task_set_hash",
    "hash_task_content",
    "hash_task_set",
]
