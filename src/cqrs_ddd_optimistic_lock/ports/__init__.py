"""Ports consumed by the guarded update."""

from __future__ import annotations

from .conditional_update import IConditionalUpdateExecutor, IRecordStore
from .unit_of_work import UnitOfWork

__all__ = ["IConditionalUpdateExecutor", "IRecordStore", "UnitOfWork"]
