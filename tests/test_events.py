"""Listener registry semantics."""

from paybridge.common.events import EventEmitter, SdkEventType


def test_emit_delivers_payload_to_listeners():
    emitter = EventEmitter()
    seen = []
    emitter.on(SdkEventType.READY, seen.append)

    event = emitter.emit(SdkEventType.READY, {"version": "6"})

    assert seen == [event]
    assert event.payload == {"version": "6"}
    assert event.type is SdkEventType.READY


def test_once_listener_fires_a_single_time():
    emitter = EventEmitter()
    seen = []
    emitter.once(SdkEventType.LOADED, seen.append)

    emitter.emit(SdkEventType.LOADED)
    emitter.emit(SdkEventType.LOADED)

    assert len(seen) == 1
    assert emitter.listener_count(SdkEventType.LOADED) == 0


def test_duplicate_registration_is_ignored():
    emitter = EventEmitter()
    seen = []
    emitter.on(SdkEventType.ERROR, seen.append)
    emitter.on(SdkEventType.ERROR, seen.append)

    emitter.emit(SdkEventType.ERROR)

    assert len(seen) == 1


def test_failing_listener_does_not_block_others():
    emitter = EventEmitter()
    seen = []

    def broken(event):
        raise RuntimeError("listener bug")

    emitter.on(SdkEventType.PAYMENT_APPROVED, broken)
    emitter.on(SdkEventType.PAYMENT_APPROVED, seen.append)

    emitter.emit(SdkEventType.PAYMENT_APPROVED)

    assert len(seen) == 1


def test_off_and_remove_all():
    emitter = EventEmitter()
    seen = []
    emitter.on(SdkEventType.SESSION_STARTED, seen.append)
    emitter.once(SdkEventType.SESSION_ENDED, seen.append)
    assert set(emitter.event_names()) == {SdkEventType.SESSION_STARTED, SdkEventType.SESSION_ENDED}

    emitter.off(SdkEventType.SESSION_STARTED, seen.append)
    emitter.emit(SdkEventType.SESSION_STARTED)
    assert seen == []

    emitter.remove_all_listeners()
    assert emitter.event_names() == []
