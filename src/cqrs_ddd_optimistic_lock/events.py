"""Record lifecycle events fired around a guarded update."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .record import VersionedRecord

    RecordListener = Callable[[VersionedRecord], Any | Awaitable[Any]]

logger = logging.getLogger("cqrs_ddd.optimistic_lock.events")

UPDATING = "updating"
UPDATED = "updated"


class ListenerRegistration:
    """A registered listener with its priority."""

    def __init__(self, listener: RecordListener, *, priority: int = 0) -> None:
        self.listener = listener
        self.priority = priority


class RecordEvents:
    """Registry of listeners for record lifecycle events.

    Listeners may be plain or ``async`` callables taking the record. Higher
    priority listeners run first. When an event is fired with ``halt=True``
    a listener returning ``False`` stops the chain, which is how an
    ``updating`` listener cancels a save::

        events = RecordEvents()
        events.listen("updating", lambda record: record.total >= 0)
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[ListenerRegistration]] = {}

    def listen(
        self,
        event: str,
        listener: RecordListener,
        *,
        priority: int = 0,
    ) -> ListenerRegistration:
        registration = ListenerRegistration(listener, priority=priority)
        registrations = self._listeners.setdefault(event, [])
        registrations.append(registration)
        registrations.sort(key=lambda r: r.priority, reverse=True)
        return registration

    def forget(self, event: str | None = None) -> None:
        """Remove the listeners of *event*, or of every event."""
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    async def fire(
        self,
        event: str,
        record: VersionedRecord,
        *,
        halt: bool = True,
    ) -> bool:
        """Run the listeners of *event*.

        Returns ``False`` only when ``halt`` is set and a listener returned
        ``False``. Without ``halt`` a failing listener is logged and the
        remaining listeners still run.
        """
        for registration in list(self._listeners.get(event, [])):
            try:
                result = registration.listener(record)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                if halt:
                    raise
                logger.error(
                    "Error in %r listener for %s",
                    event,
                    type(record).__name__,
                    exc_info=True,
                )
                continue
            if halt and result is False:
                logger.info(
                    "%r listener cancelled the operation on %s",
                    event,
                    type(record).__name__,
                )
                return False
        return True
