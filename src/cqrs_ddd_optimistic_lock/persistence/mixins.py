"""
SQLAlchemy column mixins for tables backing versioned records.

The version column is checked and bumped by the guard itself, in the
``WHERE`` and ``SET`` clauses of a single ``UPDATE``. Do not combine these
mixins with SQLAlchemy's ``version_id_col``: the ORM would bump the column
a second time.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, text
from sqlalchemy.orm import Mapped, mapped_column


class LockVersionMixin:
    """Adds the ``lock_version`` counter column.

    New rows start at 0; each guarded update increments it by exactly one.
    ``BigInteger`` keeps long-lived rows clear of 32-bit limits.
    """

    lock_version: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default=text("0")
    )


class AuditableModelMixin:
    """Adds created_at and updated_at columns for records using timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
