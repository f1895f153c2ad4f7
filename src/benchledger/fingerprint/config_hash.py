"""Configuration fingerprints for identifying comparable runs.

The config hash covers the whole experiment definition (tasks, variants and
execution parameters), so two runs share it only when they tested the same
tasks with the same models the same way. The task-set hash covers tasks
alone and groups runs that can be compared regardless of models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from benchledger.core.hashing import canonicalize, compute_hash, compute_hash_short

if TYPE_CHECKING:
    from collections.abc import Iterable

    from benchledger.fingerprint.models import ConfigHashInput


def generate_config_hash(config: ConfigHashInput) -> str:
    """Generate a deterministic fingerprint of a full experiment configuration.

    Task and variant order does not matter; variant configurations are
    canonicalized so their key order does not matter either.

    Args:
        config: The experiment definition.

    Returns:
        Full 64-character SHA256 digest.
    """
    normalized = {
        "tasks": [
            {"id": t.id, "hash": t.content_hash} for t in sorted(config.task_manifests, key=lambda t: t.id)
        ],
        "variants": [
            {"id": v.variant_id, "config": canonicalize(v.config)}
            for v in sorted(config.variants, key=lambda v: v.variant_id)
        ],
        "execution": {
            "attemptLimit": config.execution.attempt_limit,
            "temperature": config.execution.default_temperature,
            "maxTokens": config.execution.default_max_tokens,
        },
    }
    return compute_hash(normalized)


def generate_task_set_hash(tasks: Iterable[tuple[str, str]]) -> str:
    """Generate a task-set hash from task ids and their content hashes.

    Args:
        tasks: (task_id, content_hash) pairs, in any order.

    Returns:
        16-character digest.

    Example:
        >>> generate_task_set_hash([("T2", "b"), ("T1", "a")]) == generate_task_set_hash([("T1", "a"), ("T2", "b")])
        True
    """
    ordered = sorted(tasks, key=lambda t: t[0])
    return compute_hash_short([{"id": task_id, "hash": content_hash} for task_id, content_hash in ordered])
