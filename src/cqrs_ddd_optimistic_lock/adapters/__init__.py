"""In-memory adapters."""

from __future__ import annotations

from .memory import InMemoryRecordStore

__all__ = ["InMemoryRecordStore"]
