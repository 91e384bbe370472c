"""SQLAlchemy persistence adapter."""

from __future__ import annotations

from .mixins import AuditableModelMixin, LockVersionMixin
from .store import SQLAlchemyRecordStore
from .uow import SQLAlchemyUnitOfWork

__all__ = [
    "AuditableModelMixin",
    "LockVersionMixin",
    "SQLAlchemyRecordStore",
    "SQLAlchemyUnitOfWork",
]
