"""
Lifecycle notifications and the listener registry that delivers them.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any


class SyncEvent(str, Enum):
    """Events emitted by PostmanSync.

    Listener arguments:
        SYNC_START, NO_CHANGE, SYNC_COMPLETE: none
        CHANGE:            (collection, diff)
        INSERT, UPDATE:    (target_id, collection)
        SCHEDULE_OVERRIDE: (ScheduleOverride,)
        ERROR:             (exception, context)
    """

    SYNC_START = "sync_start"
    CHANGE = "change"
    NO_CHANGE = "no_change"
    INSERT = "insert"
    UPDATE = "update"
    SCHEDULE_OVERRIDE = "schedule_override"
    ERROR = "error"
    SYNC_COMPLETE = "sync_complete"


Listener = Callable[..., Any]


class EventEmitter:
    """Per-instance listener registry.

    Listeners run synchronously, in registration order, on the emitting
    thread. Exceptions raised by a listener propagate to the emitter.
    """

    def __init__(self):
        self._listeners: dict[SyncEvent, list[Listener]] = {}
        self._logger = logging.getLogger(__name__)

    def on(self, event: SyncEvent | str, listener: Listener) -> Listener:
        """Register ``listener`` for ``event`` and return it."""
        self._listeners.setdefault(SyncEvent(event), []).append(listener)
        return listener

    def off(self, event: SyncEvent | str, listener: Listener) -> None:
        listeners = self._listeners.get(SyncEvent(event), [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: SyncEvent | str) -> int:
        return len(self._listeners.get(SyncEvent(event), []))

    def emit(self, event: SyncEvent, *args: Any) -> bool:
        """Call every listener for ``event``. Returns True if there were any."""
        listeners = list(self._listeners.get(event, []))
        self._logger.debug("emit %s -> %d listener(s)", event.value, len(listeners))
        for listener in listeners:
            listener(*args)
        return bool(listeners)
