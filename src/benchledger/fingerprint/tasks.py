"""Task-set fingerprinting.

A task is a manifest file living under a difficulty-named directory plus
any number of fixture files named after its task id. The fingerprint of a
corpus changes whenever any manifest, fixture or the shared project
descriptor changes, and never depends on the order tasks are supplied in.

Example:
    >>> result = hash_task_set(
    ...     ["tasks/easy/CG-AL-E001-basic-table.yml", "tasks/easy/CG-AL-E008-basic-interface.yml"],
    ...     project_root=".",
    ... )
    >>> len(result.hash)
    16
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from benchledger.core.config import FingerprintConfig
from benchledger.core.exceptions import MalformedInputError, MalformedTaskPathError
from benchledger.core.hashing import (
    HashedFileInfo,
    compute_hash_short,
    hash_file,
    hash_manifest,
    normalize_path,
)
from benchledger.fingerprint.models import MISSING_HASH, TaskContentHashInfo, TaskSetHashResult

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _relative(path: Path, root: Path) -> str:
    """Path relative to root in POSIX form (falls back to the path itself)."""
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows
        rel = str(path)
    return normalize_path(rel)


def extract_task_id(manifest_path: str | Path, config: FingerprintConfig | None = None) -> str:
    """Extract the task id from a manifest path.

    Args:
        manifest_path: Path to the manifest file.
        config: Fingerprint configuration (for the task id pattern).

    Returns:
        The task id.

    Raises:
        MalformedTaskPathError: If the file name does not match the pattern.

    Example:
        >>> extract_task_id("tasks/easy/CG-AL-E008-basic-interface.yml")
        'CG-AL-E008'
    """
    config = config or FingerprintConfig()
    filename = PurePosixPath(normalize_path(manifest_path)).name
    match = re.match(config.task_id_pattern, filename)
    if not match or not match.group(1):
        raise MalformedTaskPathError(f"Cannot extract task ID from: {manifest_path}")
    return match.group(1)


def extract_difficulty(manifest_path: str | Path, config: FingerprintConfig | None = None) -> str:
    """Determine the difficulty from the directory a manifest lives under.

    The nearest enclosing directory named after a difficulty wins.

    Raises:
        MalformedTaskPathError: If no enclosing directory is a difficulty.

    Example:
        >>> extract_difficulty("tasks\\\\hard\\\\CG-AL-H001.yml")
        'hard'
    """
    config = config or FingerprintConfig()
    parents = PurePosixPath(normalize_path(manifest_path)).parts[:-1]
    for part in reversed(parents):
        if part in config.difficulties:
            return part
    raise MalformedTaskPathError(f"Cannot determine difficulty from: {manifest_path}")


def _discover_fixtures(
    task_id: str,
    fixture_dir: Path,
    root: Path,
    config: FingerprintConfig,
) -> list[HashedFileInfo]:
    """Hash every fixture file in fixture_dir whose name starts with task_id."""
    fixtures: list[HashedFileInfo] = []
    if not fixture_dir.is_dir():
        return fixtures

    for entry in fixture_dir.iterdir():
        if not entry.is_file():
            continue
        if not entry.name.startswith(task_id) or not entry.name.endswith(config.fixture_suffix):
            continue
        info = hash_file(entry)
        if info is None:
            continue
        info.path = _relative(entry, root)
        logger.debug(f"Hashed fixture {info.path} for {task_id}")
        fixtures.append(info)

    fixtures.sort(key=lambda f: f.path)
    return fixtures


def hash_task_content(
    manifest_path: str | Path,
    project_root: str | Path = ".",
    config: FingerprintConfig | None = None,
) -> TaskContentHashInfo:
    """Discover and hash all files belonging to a single task.

    Args:
        manifest_path: Path to the task manifest.
        project_root: Project root; fixture paths are recorded relative to it.
        config: Fingerprint configuration.

    Returns:
        TaskContentHashInfo, with a warning if no fixture file was found.

    Raises:
        MalformedTaskPathError: If task id or difficulty cannot be derived.
        FileNotFoundError: If the manifest does not exist.
    """
    config = config or FingerprintConfig()
    root = Path(project_root)
    manifest = Path(manifest_path)

    task_id = extract_task_id(manifest, config)
    difficulty = extract_difficulty(manifest, config)

    manifest_hash = hash_manifest(manifest.read_text(encoding="utf-8", errors="replace"))

    fixture_dir = root / config.fixtures_dir / difficulty
    fixtures = _discover_fixtures(task_id, fixture_dir, root, config)

    warnings: list[str] = []
    if not fixtures:
        warnings.append(f"No fixture files found for {task_id} in {normalize_path(fixture_dir)}")

    combined_hash = compute_hash_short(
        {
            "manifest": manifest_hash,
            "fixtures": [{"path": f.path, "hash": f.hash} for f in fixtures],
        }
    )

    return TaskContentHashInfo(
        task_id=task_id,
        difficulty=difficulty,
        manifest_path=_relative(manifest, root),
        manifest_hash=manifest_hash,
        fixture_files=fixtures,
        combined_hash=combined_hash,
        warnings=warnings,
    )


def hash_task_set(
    manifest_paths: Iterable[str | Path],
    project_root: str | Path = ".",
    config: FingerprintConfig | None = None,
) -> TaskSetHashResult:
    """Fingerprint a whole task corpus.

    Tasks that cannot be hashed (missing manifest, malformed name) are
    excluded and reported as warnings; the computation itself never fails
    because of a single task. A missing descriptor is recorded and replaced
    by a sentinel value.

    Args:
        manifest_paths: Manifest paths, in any order.
        project_root: Project root directory.
        config: Fingerprint configuration.

    Returns:
        TaskSetHashResult with the final hash and diagnostics.
    """
    config = config or FingerprintConfig()
    root = Path(project_root)

    tasks: list[TaskContentHashInfo] = []
    warnings: list[str] = []
    missing_files: list[str] = []

    for manifest_path in manifest_paths:
        try:
            info = hash_task_content(manifest_path, root, config)
        except FileNotFoundError:
            message = f"Manifest not found: {normalize_path(manifest_path)}"
            logger.warning(message)
            warnings.append(message)
            missing_files.append(normalize_path(manifest_path))
            continue
        except (MalformedInputError, OSError) as e:
            message = f"Failed to hash {normalize_path(manifest_path)}: {e}"
            logger.warning(message)
            warnings.append(message)
            continue
        tasks.append(info)
        warnings.extend(info.warnings)

    descriptor_path = root / config.fixtures_dir / config.descriptor_name
    descriptor = hash_file(descriptor_path)
    if descriptor is None:
        descriptor_hash = MISSING_HASH
        message = f"Project descriptor not found: {normalize_path(descriptor_path)}"
        logger.warning(message)
        warnings.append(message)
        missing_files.append(normalize_path(descriptor_path))
    else:
        descriptor_hash = descriptor.hash

    tasks.sort(key=lambda t: t.task_id)

    final_hash = compute_hash_short(
        {
            "descriptor": descriptor_hash,
            "tasks": [{"id": t.task_id, "combined": t.combined_hash} for t in tasks],
        }
    )

    total_files = sum(t.file_count for t in tasks) + (0 if descriptor is None else 1)

    return TaskSetHashResult(
        hash=final_hash,
        descriptor_hash=descriptor_hash,
        task_count=len(tasks),
        total_files_hashed=total_files,
        tasks=tasks,
        missing_files=missing_files,
        warnings=warnings,
    )
