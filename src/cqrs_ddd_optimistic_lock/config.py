"""Guard configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LOCK_FIELD = "lock_version"


class GuardSettings(BaseModel):
    """Settings shared by every update a guard protects.

    Record types still choose their own version attribute through the
    ``lock_field`` class attribute; ``default_lock_field`` only applies to
    types that do not declare one.
    """

    model_config = ConfigDict(frozen=True)

    default_lock_field: str = Field(default=DEFAULT_LOCK_FIELD, min_length=1)
    version_increment: int = Field(default=1, ge=1, le=1)
    touch_timestamps: bool = True
