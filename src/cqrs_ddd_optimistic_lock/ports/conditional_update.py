"""IConditionalUpdateExecutor — the storage write a guarded update delegates to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..guard import ChangeSet, MatchCondition
    from ..record import VersionedRecord
    from .unit_of_work import UnitOfWork


@runtime_checkable
class IConditionalUpdateExecutor(Protocol):
    """
    Writes *changes* to the rows of *record_type* selected by *match*.

    Implementations must perform the match and the write as **one** atomic
    statement (``UPDATE ... WHERE ...``) and return the number of rows that
    statement modified. Splitting them into a read followed by a write
    reopens the race the version check exists to close.
    """

    async def execute(
        self,
        record_type: type[VersionedRecord],
        match: MatchCondition,
        changes: ChangeSet,
        uow: UnitOfWork | None = None,
    ) -> int: ...


@runtime_checkable
class IRecordStore(IConditionalUpdateExecutor, Protocol):
    """Executor that can also insert and load records."""

    async def insert(
        self, record: VersionedRecord, uow: UnitOfWork | None = None
    ) -> Any: ...

    async def load(
        self,
        record_type: type[VersionedRecord],
        key: Any,
        uow: UnitOfWork | None = None,
    ) -> VersionedRecord | None: ...
