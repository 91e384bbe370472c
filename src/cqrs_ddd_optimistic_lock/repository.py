"""RecordRepository — load, insert and guarded save for one record type."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .exceptions import RecordNotFoundError
from .updater import VersionedUpdater

if TYPE_CHECKING:
    from .events import RecordEvents
    from .guard import VersionedUpdateGuard
    from .ports.conditional_update import IRecordStore
    from .ports.unit_of_work import UnitOfWork
    from .record import VersionedRecord

R = TypeVar("R", bound="VersionedRecord")


class RecordRepository(Generic[R]):
    """
    Repository over an ``IRecordStore`` for records of type ``R``.

    Loaded records start with locking disabled. Enable it on the instance
    (or pass ``lock=True`` to :meth:`save`) to make the save fail with
    :class:`ConflictError` when someone else updated the row first::

        repo = RecordRepository(Invoice, store)
        invoice = await repo.get_or_raise(1, uow=uow)
        invoice.total += 10
        await repo.save(invoice, uow=uow, lock=True)
    """

    def __init__(
        self,
        record_type: type[R],
        store: IRecordStore,
        *,
        guard: VersionedUpdateGuard | None = None,
        events: RecordEvents | None = None,
    ) -> None:
        self.record_type = record_type
        self.store = store
        self.updater = VersionedUpdater(store, guard=guard, events=events)

    @property
    def events(self) -> RecordEvents:
        return self.updater.events

    async def add(self, record: R, uow: UnitOfWork | None = None) -> Any:
        return await self.store.insert(record, uow)

    async def get(self, key: Any, uow: UnitOfWork | None = None) -> R | None:
        return await self.store.load(self.record_type, key, uow)  # type: ignore[return-value]

    async def get_or_raise(self, key: Any, uow: UnitOfWork | None = None) -> R:
        record = await self.get(key, uow)
        if record is None:
            raise RecordNotFoundError(self.record_type.__name__, key)
        return record

    async def save(
        self,
        record: R,
        uow: UnitOfWork | None = None,
        *,
        lock: bool | None = None,
    ) -> bool:
        """Write the record's pending changes; see :class:`VersionedUpdater`.

        A clean record is already saved: no event fires and nothing is written.
        """
        if not record.is_dirty():
            return True
        return await self.updater.perform_update(record, uow=uow, lock=lock)
