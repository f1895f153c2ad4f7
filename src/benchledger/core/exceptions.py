"""Custom exceptions for benchledger.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from BenchLedgerError for easy catching.
"""

from __future__ import annotations


class BenchLedgerError(Exception):
    """Base exception for all benchledger errors.

    Example:
        >>> try:
        ...     await storage.persist_run(run)
        ... except BenchLedgerError as e:
        ...     print(f"benchledger error: {e}")
    """


class StorageNotOpenError(BenchLedgerError):
    """Raised when a storage operation is attempted before open().

    Example:
        >>> raise StorageNotOpenError("Storage not open. Call open() first.")
    """


class ConflictError(BenchLedgerError):
    """Raised when a write violates a uniqueness constraint.

    Callers can treat this as an expected outcome, e.g. the importer
    reports a conflicting run as already imported.
    """


class DuplicateRunError(ConflictError):
    """Raised when a run with the same run_id already exists.

    Attributes:
        run_id: The conflicting run identifier.
    """

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} already exists")
        self.run_id = run_id


class DuplicateResultError(ConflictError):
    """Raised when a (task_id, variant_id) pair appears twice within one run.

    Attributes:
        run_id: The run the batch was persisted for.
        task_id: Conflicting task identifier.
        variant_id: Conflicting variant identifier.
    """

    def __init__(self, run_id: str, task_id: str, variant_id: str) -> None:
        super().__init__(f"Result for task {task_id} / variant {variant_id} already exists in run {run_id}")
        self.run_id = run_id
        self.task_id = task_id
        self.variant_id = variant_id


class RunNotFoundError(BenchLedgerError):
    """Raised when results are persisted for a run that does not exist."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run not found: {run_id}")
        self.run_id = run_id


class MalformedInputError(BenchLedgerError):
    """Raised when input data does not follow the expected conventions.

    Example:
        >>> raise MalformedInputError("Export file name carries no run id: results.json")
    """


class MalformedTaskPathError(MalformedInputError):
    """Raised when a task id or difficulty cannot be derived from a manifest path."""


class CanonicalizationError(BenchLedgerError, TypeError):
    """Raised when a value outside the canonicalizable shapes is hashed."""


class ConfigurationError(BenchLedgerError):
    """Raised when configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError("Unknown storage type: redis")
    """
