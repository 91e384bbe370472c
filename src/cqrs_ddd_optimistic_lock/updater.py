"""VersionedUpdater — the perform-update step of a record save."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .events import UPDATED, UPDATING, RecordEvents
from .guard import MatchCondition, UpdateOutcome, VersionedUpdateGuard

if TYPE_CHECKING:
    from .ports.conditional_update import IConditionalUpdateExecutor
    from .ports.unit_of_work import UnitOfWork
    from .record import VersionedRecord

logger = logging.getLogger("cqrs_ddd.optimistic_lock.updater")


class VersionedUpdater:
    """
    Saves the pending changes of an existing record.

    One call is one update attempt:

    1. the ``updating`` event fires; a listener returning ``False`` cancels
       the save and :meth:`perform_update` returns ``False``;
    2. a record without dirty fields is done: nothing is touched, written
       or guarded;
    3. the update timestamp is touched for records using timestamps;
    4. the guard narrows the primary-key match and bumps the version when
       locking is enabled;
    5. the executor runs the conditional update;
    6. zero affected rows under a lock raise :class:`ConflictError`;
    7. the record is marked clean and ``updated`` fires.

    Nothing is retried. After a conflict the record keeps its bumped
    version; reload it before trying again.
    """

    def __init__(
        self,
        executor: IConditionalUpdateExecutor,
        *,
        guard: VersionedUpdateGuard | None = None,
        events: RecordEvents | None = None,
    ) -> None:
        self.executor = executor
        self.guard = guard or VersionedUpdateGuard()
        self.events = events or RecordEvents()

    async def perform_update(
        self,
        record: VersionedRecord,
        *,
        uow: UnitOfWork | None = None,
        lock: bool | None = None,
    ) -> bool:
        if not await self.events.fire(UPDATING, record):
            return False

        if not record.is_dirty():
            logger.debug(
                "Nothing to update on %s(%r)", type(record).__name__, record.get_key()
            )
            return True

        if self.guard.settings.touch_timestamps and record.timestamps:
            record.touch()

        dirty = record.get_dirty()

        lock_enabled = record.lock_enabled if lock is None else lock
        match, changes = self.guard.apply(
            MatchCondition.for_record(record), dirty, record, lock=lock_enabled
        )
        affected = await self.executor.execute(type(record), match, changes, uow)
        outcome = self.guard.interpret(affected, lock_enabled, record, match)

        if outcome is UpdateOutcome.UNGUARDED_NO_MATCH:
            logger.debug(
                "Unguarded update of %s(%r) matched no row",
                type(record).__name__,
                record.get_key(),
            )

        record.sync_changes()
        await self.events.fire(UPDATED, record, halt=False)
        return True
