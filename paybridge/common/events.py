"""In-process SDK lifecycle events.

Session wrappers publish onto an `EventEmitter`; flows and tests subscribe to
observe session start/end and payment outcomes without touching callbacks.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from paybridge.common.logging import logger


class SdkEventType(str, Enum):
    LOADED = "loaded"
    READY = "ready"
    ERROR = "error"
    DESTROYED = "destroyed"
    SESSION_STARTED = "session-started"
    SESSION_ENDED = "session-ended"
    PAYMENT_APPROVED = "payment-approved"
    PAYMENT_CANCELLED = "payment-cancelled"
    PAYMENT_ERROR = "payment-error"


class SdkEvent(BaseModel):
    """Canonical event shape handed to listeners."""

    type: SdkEventType
    payload: Any = None
    occurred_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


EventListener = Callable[[SdkEvent], None]


class EventEmitter:
    """Synchronous listener registry keyed by `SdkEventType`."""

    def __init__(self) -> None:
        self._listeners: dict[SdkEventType, list[EventListener]] = {}
        self._once_listeners: dict[SdkEventType, list[EventListener]] = {}

    def on(self, event: SdkEventType, listener: EventListener) -> None:
        listeners = self._listeners.setdefault(event, [])
        if listener not in listeners:
            listeners.append(listener)

    def once(self, event: SdkEventType, listener: EventListener) -> None:
        listeners = self._once_listeners.setdefault(event, [])
        if listener not in listeners:
            listeners.append(listener)

    def off(self, event: SdkEventType, listener: EventListener) -> None:
        for registry in (self._listeners, self._once_listeners):
            listeners = registry.get(event)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del registry[event]

    def emit(self, event: SdkEventType, payload: Any = None) -> SdkEvent:
        """Deliver one event to regular then once-listeners.

        A failing listener is logged and does not stop delivery to the rest.
        """

        sdk_event = SdkEvent(type=event, payload=payload)
        for listener in list(self._listeners.get(event, [])):
            self._call(listener, sdk_event)
        once_listeners = self._once_listeners.pop(event, [])
        for listener in once_listeners:
            self._call(listener, sdk_event)
        return sdk_event

    def _call(self, listener: EventListener, sdk_event: SdkEvent) -> None:
        try:
            listener(sdk_event)
        except Exception as exc:
            logger.error("event_listener_error event=%s error=%s", sdk_event.type.value, exc)

    def remove_all_listeners(self, event: SdkEventType | None = None) -> None:
        if event is None:
            self._listeners.clear()
            self._once_listeners.clear()
            return
        self._listeners.pop(event, None)
        self._once_listeners.pop(event, None)

    def listener_count(self, event: SdkEventType) -> int:
        return len(self._listeners.get(event, [])) + len(self._once_listeners.get(event, []))

    def event_names(self) -> list[SdkEventType]:
        names = list(self._listeners)
        names.extend(name for name in self._once_listeners if name not in names)
        return names
