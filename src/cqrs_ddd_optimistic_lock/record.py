"""VersionedRecord — a persisted entity with dirty tracking and a lock toggle."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, PrivateAttr
from typing_extensions import Self

from .exceptions import RecordConfigurationError


class VersionedRecord(BaseModel):
    """Base class for records whose updates may be guarded by a version column.

    The record keeps a snapshot of the values it was loaded with so the
    persistence layer can compute the fields that actually need writing.
    Optimistic locking is off by default and must be switched on for each
    loaded instance::

        class Invoice(VersionedRecord):
            id: int
            total: Decimal
            lock_version: int = 0

        invoice = await repo.get(1)
        invoice.total += 10
        await repo.save(invoice.enable_lock())

    Class attributes:

    - ``lock_field``: attribute holding the version counter. ``None`` means
      the guard's default (``lock_version``).
    - ``primary_key``: attribute identifying the stored row.
    - ``timestamps`` / ``updated_at_field``: touch an update timestamp on
      every update.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    lock_field: ClassVar[str | None] = None
    primary_key: ClassVar[str] = "id"
    timestamps: ClassVar[bool] = False
    updated_at_field: ClassVar[str] = "updated_at"

    _original: dict[str, Any] = PrivateAttr(default_factory=dict)
    _changes: dict[str, Any] = PrivateAttr(default_factory=dict)
    _lock_enabled: bool = PrivateAttr(default=False)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        fields = cls.model_fields
        if cls.lock_field is not None and cls.lock_field not in fields:
            raise RecordConfigurationError(
                f"{cls.__name__}.lock_field={cls.lock_field!r} is not a field "
                f"of the record."
            )
        if cls.timestamps and cls.updated_at_field not in fields:
            raise RecordConfigurationError(
                f"{cls.__name__} uses timestamps but has no "
                f"{cls.updated_at_field!r} field."
            )

    def model_post_init(self, context: Any, /) -> None:
        self.sync_original()

    # -- optimistic lock mode -----------------------------------------------

    def enable_lock(self) -> Self:
        """Guard the next updates of this instance with its version field."""
        self._lock_enabled = True
        return self

    def disable_lock(self) -> Self:
        """Write the next updates of this instance unconditionally."""
        self._lock_enabled = False
        return self

    @property
    def lock_enabled(self) -> bool:
        return self._lock_enabled

    # -- attribute access ---------------------------------------------------

    @classmethod
    def _require_field(cls, name: str) -> None:
        if name not in cls.model_fields:
            raise RecordConfigurationError(
                f"{cls.__name__} has no field named {name!r}."
            )

    def get_attribute(self, name: str) -> Any:
        self._require_field(name)
        return getattr(self, name)

    def set_attribute(self, name: str, value: Any) -> None:
        self._require_field(name)
        setattr(self, name, value)

    def get_key(self) -> Any:
        """Return the primary key value identifying the stored row."""
        return self.get_attribute(self.primary_key)

    # -- dirty tracking -----------------------------------------------------

    def get_original(self) -> dict[str, Any]:
        """Return the values as last loaded from (or written to) storage."""
        return dict(self._original)

    def get_dirty(self) -> dict[str, Any]:
        """Return the fields whose value differs from the loaded snapshot."""
        dirty: dict[str, Any] = {}
        for name in type(self).model_fields:
            value = getattr(self, name)
            if name not in self._original or self._original[name] != value:
                dirty[name] = value
        return dirty

    def is_dirty(self) -> bool:
        return bool(self.get_dirty())

    def get_changes(self) -> dict[str, Any]:
        """Return the fields written by the last successful update."""
        return dict(self._changes)

    def sync_original(self) -> None:
        """Treat the current values as the stored state."""
        self._original = {
            name: copy.deepcopy(getattr(self, name))
            for name in type(self).model_fields
        }

    def sync_changes(self) -> None:
        """Record the pending changes as written and mark the record clean."""
        self._changes = self.get_dirty()
        self.sync_original()

    def touch(self) -> None:
        """Set the update timestamp to *now* for records using timestamps."""
        if self.timestamps:
            setattr(self, self.updated_at_field, datetime.now(timezone.utc))
