"""UnitOfWork — transaction boundary that guarded saves run inside."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from typing_extensions import Self

from ..exceptions import ConflictError

logger = logging.getLogger("cqrs_ddd.optimistic_lock.uow")


class UnitOfWork(ABC):
    """
    Commits the writes of a block on a clean exit, rolls them back otherwise.

    The guard takes no locks and opens no transactions. Running several
    guarded saves in one unit of work makes them land together: when any of
    them raises :class:`ConflictError` the writes already issued in the block
    are rolled back and the conflict propagates unchanged::

        async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
            await invoices.save(invoice, uow=uow, lock=True)
            await ledger.save(entry, uow=uow, lock=True)
    """

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is None:
            await self.commit()
            return
        if isinstance(exc_val, ConflictError):
            logger.warning(
                "Rolling back unit of work after conflict on %s(%r)",
                exc_val.record_type,
                exc_val.record_id,
            )
        await self.rollback()
