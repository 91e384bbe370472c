"""InMemoryRecordStore — dict-backed record storage for unit tests."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from ..guard import ChangeSet, MatchCondition
    from ..ports.unit_of_work import UnitOfWork
    from ..record import VersionedRecord

R = TypeVar("R", bound="VersionedRecord")


class InMemoryRecordStore:
    """In-memory implementation of ``IRecordStore``.

    Rows are plain dicts keyed by record type and primary key. Records are
    never shared with the store: :meth:`insert` copies the values in and
    :meth:`load` builds a fresh record, so two loads behave like two
    independent writers.

    :meth:`execute` evaluates the match and applies the changes without
    yielding to the event loop, which makes it atomic for every coroutine
    sharing the store.
    """

    def __init__(self) -> None:
        self._tables: dict[type[Any], dict[Any, dict[str, Any]]] = {}
        self.executed: list[tuple[MatchCondition, ChangeSet]] = []

    def _table(self, record_type: type[Any]) -> dict[Any, dict[str, Any]]:
        return self._tables.setdefault(record_type, {})

    async def insert(
        self,
        record: VersionedRecord,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> Any:
        key = record.get_key()
        self._table(type(record))[key] = copy.deepcopy(record.model_dump())
        record.sync_original()
        return key

    async def load(
        self,
        record_type: type[R],
        key: Any,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> R | None:
        row = self._table(record_type).get(key)
        if row is None:
            return None
        return record_type.model_validate(copy.deepcopy(row))

    async def execute(
        self,
        record_type: type[VersionedRecord],
        match: MatchCondition,
        changes: ChangeSet,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> int:
        self.executed.append((match, dict(changes)))
        affected = 0
        for row in self._table(record_type).values():
            if match.matches(row):
                row.update(copy.deepcopy(changes))
                affected += 1
        return affected

    # ── Test helpers ─────────────────────────────────────────────

    def row(self, record_type: type[Any], key: Any) -> dict[str, Any] | None:
        """Return a copy of the stored row, bypassing record construction."""
        row = self._table(record_type).get(key)
        return dict(row) if row is not None else None

    def delete(self, record_type: type[Any], key: Any) -> None:
        self._table(record_type).pop(key, None)

    def clear(self) -> None:
        self._tables.clear()
        self.executed.clear()
