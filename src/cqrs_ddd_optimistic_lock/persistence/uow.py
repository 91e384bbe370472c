"""SQLAlchemyUnitOfWork — one AsyncSession transaction per block."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import SessionManagementError, UnitOfWorkError
from ..ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Runs guarded saves inside one ``AsyncSession`` transaction.

    Pass either a ``session`` the caller owns or a ``session_factory``; with
    a factory the unit of work opens a session on entry and closes it on
    exit::

        factory = async_sessionmaker(engine, expire_on_commit=False)
        async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
            account = await accounts.get_or_raise(1, uow=uow)
            account.balance += 10
            await accounts.save(account, uow=uow, lock=True)

    The conditional ``UPDATE`` statements only become visible to other
    writers on commit. A :class:`ConflictError` raised in the block rolls the
    transaction back, so no earlier save of the same block survives it.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if (session is None) == (session_factory is None):
            raise SessionManagementError(
                "Provide exactly one of 'session' or 'session_factory'."
            )
        self._session = session
        self._session_factory = session_factory
        self._owns_session = session is None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise UnitOfWorkError("No session yet; enter the unit of work first.")
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        if self._owns_session and self._session_factory is not None:
            self._session = self._session_factory()
        try:
            if not self.session.in_transaction():
                await self.session.begin()
        except SQLAlchemyError as e:
            raise SessionManagementError(f"Failed to begin transaction: {e}") from e
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            if self._owns_session and self._session is not None:
                session, self._session = self._session, None
                try:
                    await session.close()
                except SQLAlchemyError as e:
                    raise SessionManagementError(f"Failed to close session: {e}") from e

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            with contextlib.suppress(UnitOfWorkError):
                await self.rollback()
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        if not self.session.in_transaction():
            return
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e
