"""Models for task-set and configuration fingerprints.

Task fingerprints are derived on demand from the task corpus on disk and
are never persisted; runs only carry the final hash as a tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from benchledger.core.hashing import HashedFileInfo

MISSING_HASH = "missing"


@dataclass
class TaskContentHashInfo:
    """Fingerprint of a single task.

    Attributes:
        task_id: Task identifier extracted from the manifest name.
        difficulty: Difficulty directory the manifest lives under.
        manifest_path: Manifest path relative to the project root.
        manifest_hash: Digest of the trimmed manifest content.
        fixture_files: Fixture file hashes, sorted by path.
        combined_hash: Digest over manifest hash and fixture hashes.
        warnings: Non-fatal findings (e.g. no fixtures found).
    """

    task_id: str
    difficulty: str
    manifest_path: str
    manifest_hash: str
    fixture_files: list[HashedFileInfo]
    combined_hash: str
    warnings: list[str] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        """Number of files hashed for this task (manifest included)."""
        return len(self.fixture_files) + 1


@dataclass
class TaskSetHashResult:
    """Fingerprint of a whole task corpus.

    Attributes:
        hash: Final 16-character corpus fingerprint.
        descriptor_hash: Digest of the shared descriptor, or "missing".
        task_count: Number of tasks included in the fingerprint.
        total_files_hashed: Manifests + fixtures + descriptor (when present).
        tasks: Per-task fingerprints, sorted by task id.
        missing_files: Expected files that were not found.
        warnings: Accumulated non-fatal findings.
        computed_at: When the fingerprint was computed.

    Example:
        >>> result = hash_task_set(manifests, project_root)
        >>> if result.warnings:
        ...     print("\\n".join(result.warnings))
        >>> run.task_set_hash = result.hash
    """

    hash: str
    descriptor_hash: str
    task_count: int
    total_files_hashed: int
    tasks: list[TaskContentHashInfo]
    missing_files: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TaskManifestRef(BaseModel):
    """A task id with the content hash of its manifest."""

    model_config = {"frozen": True}

    id: str = Field(..., description="Task identifier")
    content_hash: str = Field(..., description="Task content hash")


class VariantSpec(BaseModel):
    """A model variant with the exact configuration used for it."""

    model_config = {"frozen": True}

    variant_id: str = Field(..., description="Variant identifier")
    config: dict[str, Any] = Field(default_factory=dict, description="Variant configuration")


class ExecutionParams(BaseModel):
    """Execution parameters shared by every task in a run."""

    model_config = {"frozen": True}

    attempt_limit: int = Field(..., ge=1, description="Maximum attempts per task")
    default_temperature: float | None = Field(default=None, description="Default sampling temperature")
    default_max_tokens: int | None = Field(default=None, description="Default completion token limit")


class ConfigHashInput(BaseModel):
    """Everything that defines an experiment configuration.

    Example:
        >>> config = ConfigHashInput(
        ...     task_manifests=[TaskManifestRef(id="CG-AL-E001", content_hash="ab12...")],
        ...     variants=[VariantSpec(variant_id="openai/gpt-4o", config={"temperature": 0.2})],
        ...     execution=ExecutionParams(attempt_limit=2),
        ... )
    """

    task_manifests: list[TaskManifestRef] = Field(default_factory=list)
    variants: list[VariantSpec] = Field(default_factory=list)
    execution: ExecutionParams
