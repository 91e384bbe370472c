"""SQLAlchemyRecordStore — conditional updates through an AsyncSession."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar, cast

from sqlalchemy import and_, update
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import RecordConfigurationError, StorageError
from .uow import SQLAlchemyUnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

    from ..guard import ChangeSet, MatchCondition
    from ..ports.unit_of_work import UnitOfWork
    from ..record import VersionedRecord

logger = logging.getLogger("cqrs_ddd.optimistic_lock.sqlalchemy")

R = TypeVar("R", bound="VersionedRecord")
UnitOfWorkFactory = Callable[[], SQLAlchemyUnitOfWork]


class SQLAlchemyRecordStore:
    """
    Implementation of ``IRecordStore`` on top of SQLAlchemy declarative models.

    Each record type is mapped to the declarative model of its table::

        store = SQLAlchemyRecordStore({Invoice: InvoiceModel})

    :meth:`execute` issues exactly one statement,
    ``UPDATE invoices SET ... WHERE id = :id AND lock_version = :v``, and
    returns the driver's row count for it. The ORM identity map is not
    synchronised; :meth:`load` always refreshes from the database.
    """

    def __init__(
        self,
        models: Mapping[type[VersionedRecord], type[Any]],
        uow_factory: UnitOfWorkFactory | None = None,
    ) -> None:
        self._models = dict(models)
        self._uow_factory = uow_factory

    # -- helpers ------------------------------------------------------------

    def _require_uow(self, uow: UnitOfWork | None = None) -> SQLAlchemyUnitOfWork:
        if uow is not None:
            return cast("SQLAlchemyUnitOfWork", uow)
        if self._uow_factory is not None:
            return self._uow_factory()
        raise ValueError("No UnitOfWork provided or configured.")

    def model_for(self, record_type: type[VersionedRecord]) -> type[Any]:
        try:
            return self._models[record_type]
        except KeyError:
            raise RecordConfigurationError(
                f"No SQLAlchemy model registered for {record_type.__name__}."
            ) from None

    @staticmethod
    def build_where(model: type[Any], match: MatchCondition) -> ColumnElement[bool]:
        """Compile a match condition into a ``WHERE`` clause for *model*."""
        clauses = []
        for predicate in match:
            column = getattr(model, predicate.field, None)
            if column is None:
                raise RecordConfigurationError(
                    f"{model.__name__} has no column {predicate.field!r}."
                )
            clauses.append(
                column.is_(None) if predicate.value is None else column == predicate.value
            )
        return and_(*clauses)

    # -- IRecordStore -------------------------------------------------------

    async def insert(self, record: VersionedRecord, uow: UnitOfWork | None = None) -> Any:
        active_uow = self._require_uow(uow)
        model_cls = self.model_for(type(record))
        model = model_cls(**record.model_dump(exclude_none=True))
        try:
            active_uow.session.add(model)
            await active_uow.session.flush()
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to insert {type(record).__name__}: {e}"
            ) from e

        for name in type(record).model_fields:
            if hasattr(model, name):
                setattr(record, name, getattr(model, name))
        record.sync_original()
        return record.get_key()

    async def load(
        self,
        record_type: type[R],
        key: Any,
        uow: UnitOfWork | None = None,
    ) -> R | None:
        active_uow = self._require_uow(uow)
        model = await active_uow.session.get(
            self.model_for(record_type), key, populate_existing=True
        )
        if model is None:
            return None
        return record_type.model_validate(model, from_attributes=True)

    async def execute(
        self,
        record_type: type[VersionedRecord],
        match: MatchCondition,
        changes: ChangeSet,
        uow: UnitOfWork | None = None,
    ) -> int:
        active_uow = self._require_uow(uow)
        model = self.model_for(record_type)
        stmt = (
            update(model)
            .where(self.build_where(model, match))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await active_uow.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Conditional update of {record_type.__name__} failed: {e}"
            ) from e
        affected = cast("int", result.rowcount)  # type: ignore[attr-defined]
        logger.debug(
            "UPDATE %s matched %d row(s)", model.__tablename__, affected
        )
        return affected
