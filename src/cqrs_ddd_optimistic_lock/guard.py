"""VersionedUpdateGuard — compare-and-increment protection for record updates.

The guard never talks to storage. It narrows the match condition of an
update to the version the record was loaded with, adds the bumped version
to the change-set and, once the storage layer reports how many rows the
single conditional ``UPDATE`` touched, turns a zero count into a
:class:`ConflictError`.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .config import GuardSettings
from .exceptions import ConflictError, RecordConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .record import VersionedRecord

logger = logging.getLogger("cqrs_ddd.optimistic_lock.guard")

ChangeSet = dict[str, Any]


@dataclass(frozen=True)
class Predicate:
    """Equality predicate ``field == value``; ``None`` means ``IS NULL``."""

    field: str
    value: Any


@dataclass(frozen=True)
class MatchCondition:
    """Conjunction of equality predicates selecting the row to update.

    Immutable: :meth:`where` returns a new, narrower condition.
    """

    predicates: tuple[Predicate, ...] = ()

    @classmethod
    def for_key(cls, field: str, value: Any) -> MatchCondition:
        return cls((Predicate(field, value),))

    @classmethod
    def for_record(cls, record: VersionedRecord) -> MatchCondition:
        return cls.for_key(record.primary_key, record.get_key())

    def where(self, field: str, value: Any) -> MatchCondition:
        return MatchCondition((*self.predicates, Predicate(field, value)))

    def matches(self, row: dict[str, Any]) -> bool:
        """Return True if *row* satisfies every predicate."""
        return all(
            p.field in row and row[p.field] == p.value for p in self.predicates
        )

    def value_of(self, field: str) -> Any:
        """Return the value the condition requires for *field*."""
        for predicate in self.predicates:
            if predicate.field == field:
                return predicate.value
        raise KeyError(field)

    def __iter__(self) -> Iterator[Predicate]:
        return iter(self.predicates)

    def __len__(self) -> int:
        return len(self.predicates)


class UpdateOutcome(enum.Enum):
    """Terminal states of an update attempt that did not conflict."""

    SUCCEEDED = "succeeded"
    UNGUARDED_NO_MATCH = "unguarded_no_match"


class VersionedUpdateGuard:
    """Builds and checks optimistic version guards for record updates."""

    def __init__(self, settings: GuardSettings | None = None) -> None:
        self.settings = settings or GuardSettings()

    def resolve_version_field(
        self, record: VersionedRecord | type[VersionedRecord]
    ) -> str:
        """Return the record type's ``lock_field`` or the default one."""
        record_type = record if isinstance(record, type) else type(record)
        return record_type.lock_field or self.settings.default_lock_field

    def apply(
        self,
        match: MatchCondition,
        changes: ChangeSet,
        record: VersionedRecord,
        *,
        lock: bool | None = None,
    ) -> tuple[MatchCondition, ChangeSet]:
        """Add the version check and bump to an update.

        With locking disabled the inputs are returned as they are. With
        locking enabled the version read from the record's in-memory state
        becomes part of the match condition, and the incremented version is
        both written back to the record and added to the change-set.

        *lock* overrides the record's own lock mode for this call only.

        Raises :class:`RecordConfigurationError`, before anything is changed,
        when locking is requested for a record type that has no version
        field. That is a declaration error; a correctly declared record
        never makes this method fail.
        """
        enabled = record.lock_enabled if lock is None else lock
        if not enabled:
            return match, changes

        lock_field = self.resolve_version_field(record)
        if lock_field not in type(record).model_fields:
            raise RecordConfigurationError(
                f"{type(record).__name__} cannot be saved with optimistic "
                f"locking: it has no {lock_field!r} field."
            )
        current_version = record.get_attribute(lock_field)
        new_version = (current_version or 0) + self.settings.version_increment
        record.set_attribute(lock_field, new_version)

        guarded_changes = dict(changes)
        guarded_changes[lock_field] = new_version
        logger.debug(
            "Guarding update of %s(%r) on %s=%r -> %r",
            type(record).__name__,
            record.get_key(),
            lock_field,
            current_version,
            new_version,
        )
        return match.where(lock_field, current_version), guarded_changes

    def interpret(
        self,
        affected: int,
        lock_enabled: bool,
        record: VersionedRecord | None = None,
        match: MatchCondition | None = None,
    ) -> UpdateOutcome:
        """Turn the affected row count of a conditional update into an outcome.

        Raises :class:`ConflictError` when a guarded update matched no row.
        An unguarded update that matched nothing is reported, not raised;
        deciding what a missing row means is left to the caller.
        """
        if affected > 0:
            return UpdateOutcome.SUCCEEDED
        if not lock_enabled:
            return UpdateOutcome.UNGUARDED_NO_MATCH

        record_type = type(record).__name__ if record is not None else None
        lock_field = (
            self.resolve_version_field(record) if record is not None else None
        )
        expected: Any = None
        if match is not None and lock_field is not None:
            try:
                expected = match.value_of(lock_field)
            except KeyError:
                expected = None
        record_id = record.get_key() if record is not None else None
        logger.warning(
            "Optimistic lock conflict on %s(%r): expected %s=%r",
            record_type,
            record_id,
            lock_field,
            expected,
        )
        raise ConflictError(
            f"{record_type or 'Record'} {record_id!r} has been changed during "
            f"update (expected {lock_field}={expected!r}).",
            record_type=record_type,
            record_id=record_id,
            lock_field=lock_field,
            expected_version=expected,
        )


def resolve_version_field(
    record: VersionedRecord | type[VersionedRecord],
    default: str | None = None,
) -> str:
    """Module-level shortcut for :meth:`VersionedUpdateGuard.resolve_version_field`."""
    record_type = record if isinstance(record, type) else type(record)
    return record_type.lock_field or default or GuardSettings().default_lock_field
