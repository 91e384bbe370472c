"""Optimistic locking for versioned record updates."""

from __future__ import annotations

from .adapters.memory import InMemoryRecordStore
from .config import DEFAULT_LOCK_FIELD, GuardSettings
from .events import UPDATED, UPDATING, RecordEvents
from .exceptions import (
    ConcurrencyError,
    ConflictError,
    OptimisticLockError,
    PersistenceError,
    RecordConfigurationError,
    RecordNotFoundError,
    SessionManagementError,
    StorageError,
    UnitOfWorkError,
)
from .guard import (
    ChangeSet,
    MatchCondition,
    Predicate,
    UpdateOutcome,
    VersionedUpdateGuard,
    resolve_version_field,
)
from .ports import IConditionalUpdateExecutor, IRecordStore, UnitOfWork
from .record import VersionedRecord
from .repository import RecordRepository
from .updater import VersionedUpdater

__all__ = [
    # Core
    "VersionedRecord",
    "VersionedUpdateGuard",
    "VersionedUpdater",
    "RecordRepository",
    "MatchCondition",
    "Predicate",
    "ChangeSet",
    "UpdateOutcome",
    "resolve_version_field",
    # Configuration
    "GuardSettings",
    "DEFAULT_LOCK_FIELD",
    # Events
    "RecordEvents",
    "UPDATING",
    "UPDATED",
    # Ports / adapters
    "IConditionalUpdateExecutor",
    "IRecordStore",
    "UnitOfWork",
    "InMemoryRecordStore",
    # Exceptions
    "OptimisticLockError",
    "ConcurrencyError",
    "PersistenceError",
    "ConflictError",
    "RecordNotFoundError",
    "RecordConfigurationError",
    "StorageError",
    "SessionManagementError",
    "UnitOfWorkError",
]
