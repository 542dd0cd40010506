"""In-memory window model with structured postMessage semantics.

A `FrameWindow` has an origin and message listeners. Posting to a window
delivers only when the window's origin matches the declared target origin,
and the receiver always sees the sender's real origin.
"""

import copy
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

from paybridge.common.logging import logger

MessageListener = Callable[["MessageEvent"], None]


@dataclass(frozen=True)
class MessageEvent:
    origin: str
    data: Any
    source: "FrameWindow | None" = None


def origin_of(url: str) -> str:
    """Scheme + host + port of `url`, as browsers compute `URL.origin`."""

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {url!r}")
    return f"{parts.scheme}://{parts.netloc}"


class FrameWindow:
    """A browsing context: its URL, origin, parent and listeners."""

    def __init__(self, url: str, parent: "FrameWindow | None" = None) -> None:
        self.url = url
        self.origin = origin_of(url)
        self.parent = parent
        self._listeners: list[MessageListener] = []

    def query_param(self, name: str) -> str | None:
        values = parse_qs(urlsplit(self.url).query).get(name)
        return values[0] if values else None

    def add_message_listener(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def remove_message_listener(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def post_message(self, payload: Any, target_origin: str, sender: "FrameWindow | None" = None) -> bool:
        """Deliver `payload` to this window's listeners; False when the origin check blocks it."""

        if target_origin != "*" and target_origin != self.origin:
            logger.warning(
                "post_message_blocked target_origin=%s window_origin=%s",
                target_origin,
                self.origin,
            )
            return False
        sender_origin = sender.origin if sender is not None else "null"
        event = MessageEvent(origin=sender_origin, data=copy.deepcopy(payload), source=sender)
        for listener in list(self._listeners):
            listener(event)
        return True
