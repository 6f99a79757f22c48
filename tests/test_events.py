"""
Unit tests for EventEmitter.
"""

import pytest

from postman_sync.events import EventEmitter
from postman_sync.events import SyncEvent


def test_listeners_called_in_registration_order():
    emitter = EventEmitter()
    calls = []
    emitter.on(SyncEvent.UPDATE, lambda target_id, collection: calls.append(("first", target_id)))
    emitter.on(SyncEvent.UPDATE, lambda target_id, collection: calls.append(("second", target_id)))

    assert emitter.emit(SyncEvent.UPDATE, "ws-1", {}) is True
    assert calls == [("first", "ws-1"), ("second", "ws-1")]


def test_emit_without_listeners():
    assert EventEmitter().emit(SyncEvent.NO_CHANGE) is False


def test_string_event_names_accepted():
    emitter = EventEmitter()
    seen = []
    emitter.on("sync_start", lambda: seen.append(1))

    emitter.emit(SyncEvent.SYNC_START)

    assert seen == [1]
    assert emitter.listener_count(SyncEvent.SYNC_START) == 1


def test_unknown_event_name_rejected():
    with pytest.raises(ValueError):
        EventEmitter().on("finished", lambda: None)


def test_off_removes_only_that_listener():
    emitter = EventEmitter()
    keep = emitter.on(SyncEvent.ERROR, lambda error, context: None)
    drop = emitter.on(SyncEvent.ERROR, lambda error, context: None)

    emitter.off(SyncEvent.ERROR, drop)
    emitter.off(SyncEvent.ERROR, drop)

    assert emitter.listener_count(SyncEvent.ERROR) == 1
    emitter.off(SyncEvent.ERROR, keep)
    assert emitter.listener_count(SyncEvent.ERROR) == 0


def test_listener_exception_propagates():
    emitter = EventEmitter()

    def broken():
        raise RuntimeError("listener failed")

    emitter.on(SyncEvent.SYNC_COMPLETE, broken)
    with pytest.raises(RuntimeError):
        emitter.emit(SyncEvent.SYNC_COMPLETE)


def test_emitters_are_independent():
    first, second = EventEmitter(), EventEmitter()
    first.on(SyncEvent.CHANGE, lambda collection, diff: None)
    assert second.listener_count(SyncEvent.CHANGE) == 0
