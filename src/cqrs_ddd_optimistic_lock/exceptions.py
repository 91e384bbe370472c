"""Exceptions for optimistic locking of versioned records."""

from __future__ import annotations

from typing import Any


class OptimisticLockError(Exception):
    """Root exception for the optimistic-lock package."""


class ConcurrencyError(OptimisticLockError):
    """Base class for concurrency-related conflicts."""


class PersistenceError(OptimisticLockError):
    """Base class for all persistence-related errors."""


class ConflictError(ConcurrencyError, PersistenceError):
    """Raised when a guarded update matched no rows.

    The stored version no longer equals the version the record was loaded
    with: another writer updated the row in between. Callers that want to
    retry must reload the record, reapply their changes and save again.
    """

    def __init__(
        self,
        message: str = "Record has been changed during update.",
        *,
        record_type: str | None = None,
        record_id: Any = None,
        lock_field: str | None = None,
        expected_version: Any = None,
    ) -> None:
        self.record_type = record_type
        self.record_id = record_id
        self.lock_field = lock_field
        self.expected_version = expected_version
        super().__init__(message)


class RecordNotFoundError(PersistenceError):
    """Raised when a record cannot be found by its primary key."""

    def __init__(self, record_type: str, record_id: object) -> None:
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} with id={record_id!r} not found")


class RecordConfigurationError(OptimisticLockError):
    """Raised when a record type is declared with an invalid configuration."""


class StorageError(PersistenceError):
    """Raised when the storage layer fails to execute a statement."""


class SessionManagementError(StorageError):
    """Raised when session creation or management fails."""


class UnitOfWorkError(StorageError):
    """Raised when Unit of Work operations fail."""


__all__: list[str] = [
    "ConcurrencyError",
    "ConflictError",
    "OptimisticLockError",
    "PersistenceError",
    "RecordConfigurationError",
    "RecordNotFoundError",
    "SessionManagementError",
    "StorageError",
    "UnitOfWorkError",
]
