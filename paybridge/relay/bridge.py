"""Origin-checked relay between a merchant page and a sandboxed payment frame.

The payment frame (child) runs the SDK session and reports lifecycle events up;
the merchant page (parent) adjusts its own chrome for the active presentation
mode and can ask the child to close the payment window. Each side acts only on
messages from the single origin it expects.
"""

from collections.abc import Callable
from typing import Any, Protocol

from paybridge.common.config import settings
from paybridge.common.errors import ErrorCode, SdkError
from paybridge.common.logging import logger
from paybridge.common.metrics import relay_messages_total
from paybridge.relay.channel import FrameWindow, MessageEvent
from paybridge.relay.messages import FLOW_END_EVENTS, FrameEvent, FrameMessage, parse_frame_message


class CancellableSession(Protocol):
    def cancel(self) -> None: ...


class DialogOverlay:
    """Full-page overlay shown behind a popup payment window."""

    def __init__(self) -> None:
        self.is_open = False

    def show_modal(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False


class FrameElement:
    """The iframe element hosting the payment frame."""

    FULL_WINDOW_CLASS = "fullWindow"

    def __init__(self) -> None:
        self.classes: set[str] = set()

    @property
    def is_full_window(self) -> bool:
        return self.FULL_WINDOW_CLASS in self.classes

    def expand(self) -> None:
        self.classes.add(self.FULL_WINDOW_CLASS)

    def restore(self) -> None:
        self.classes.discard(self.FULL_WINDOW_CLASS)


def _record(side: str, event_name: str, outcome: str) -> None:
    relay_messages_total.labels(
        service=settings.service_name,
        side=side,
        event_name=event_name,
        outcome=outcome,
    ).inc()


class ParentFrameBridge:
    """Merchant-page side of the relay."""

    side = "parent"

    def __init__(
        self,
        window: FrameWindow,
        child: FrameWindow,
        expected_origin: str | None = None,
        overlay: DialogOverlay | None = None,
        frame: FrameElement | None = None,
    ) -> None:
        self.window = window
        self.child = child
        self.expected_origin = expected_origin or settings.child_origin
        self.overlay = overlay or DialogOverlay()
        self.frame = frame or FrameElement()
        self.merchant_domain = window.origin
        self.presentation_mode: str | None = None
        self.last_message: MessageEvent | None = None
        self.setup_complete = False
        self._mode_handlers: dict[str, Callable[[FrameEvent], None]] = {
            "popup": self._handle_popup,
            "modal": self._handle_modal,
        }

    def setup(self) -> None:
        """Register the message listener once."""

        if self.setup_complete:
            return
        self.window.add_message_listener(self.on_message)
        self.setup_complete = True

    def on_message(self, event: MessageEvent) -> None:
        if event.origin != self.expected_origin:
            logger.warning("relay_message_dropped side=parent origin=%s", event.origin)
            _record(self.side, "unknown", "dropped_origin")
            return

        self.last_message = event
        message = parse_frame_message(event.data)
        if message is None:
            _record(self.side, "unknown", "ignored")
            return
        _record(self.side, message.event_name.value, "accepted")

        if message.event_name is FrameEvent.PRESENTATION_MODE_CHANGED:
            self.presentation_mode = (message.data or {}).get("presentationMode")
            logger.info("relay_presentation_mode_changed mode=%s", self.presentation_mode)
            return

        handler = self._mode_handlers.get(self.presentation_mode or "")
        if handler is not None:
            handler(message.event_name)

    def _handle_popup(self, event_name: FrameEvent) -> None:
        if event_name is FrameEvent.PAYMENT_FLOW_START:
            self.overlay.show_modal()
        elif event_name in FLOW_END_EVENTS:
            self.overlay.close()

    def _handle_modal(self, event_name: FrameEvent) -> None:
        if event_name is FrameEvent.PAYMENT_FLOW_START:
            self.frame.expand()
        elif event_name in FLOW_END_EVENTS:
            self.frame.restore()

    def close_overlay(self) -> None:
        """Buyer dismissed the overlay: hide it and ask the child to close the payment window."""

        self.overlay.close()
        self.send_to_child(FrameMessage(event_name=FrameEvent.CLOSE_PAYMENT_WINDOW))

    def send_to_child(self, message: FrameMessage) -> bool:
        return self.child.post_message(message.to_payload(), self.child.origin, sender=self.window)


class ChildFrameBridge:
    """Payment-frame side of the relay.

    The parent origin is read from the frame URL's `origin` query parameter.
    """

    side = "child"

    def __init__(self, window: FrameWindow) -> None:
        self.window = window
        self.payment_session: CancellableSession | None = None
        self.presentation_mode: str | None = None
        self.last_message: dict[str, Any] | None = None
        self.setup_complete = False

    @property
    def parent_origin(self) -> str | None:
        return self.window.query_param("origin")

    def setup(self) -> None:
        if self.setup_complete:
            return
        self.window.add_message_listener(self.on_message)
        self.setup_complete = True

    def on_message(self, event: MessageEvent) -> None:
        parent_origin = self.parent_origin
        if parent_origin is None or event.origin != parent_origin:
            logger.warning("relay_message_dropped side=child origin=%s", event.origin)
            _record(self.side, "unknown", "dropped_origin")
            return

        self.last_message = event.data
        message = parse_frame_message(event.data)
        if message is None:
            _record(self.side, "unknown", "ignored")
            return
        _record(self.side, message.event_name.value, "accepted")

        if message.event_name is FrameEvent.CLOSE_PAYMENT_WINDOW and self.payment_session is not None:
            logger.info("relay_close_payment_window")
            self.payment_session.cancel()

    def send_to_parent(self, event_name: FrameEvent, data: dict[str, Any] | None = None) -> bool:
        parent_origin = self.parent_origin
        if parent_origin is None:
            raise SdkError(ErrorCode.INVALID_CONFIGURATION, "frame URL has no origin parameter")
        if self.window.parent is None:
            raise SdkError(ErrorCode.INVALID_CONFIGURATION, "frame has no parent window")
        message = FrameMessage(event_name=event_name, data=data)
        return self.window.parent.post_message(message.to_payload(), parent_origin, sender=self.window)

    def select_presentation_mode(self, presentation_mode: str) -> None:
        self.presentation_mode = presentation_mode
        self.send_to_parent(FrameEvent.PRESENTATION_MODE_CHANGED, {"presentationMode": presentation_mode})

    def notify_flow_start(self, payment_flow_config: dict[str, Any]) -> None:
        self.send_to_parent(FrameEvent.PAYMENT_FLOW_START, {"paymentFlowConfig": payment_flow_config})

    def notify_approved(self, order_data: dict[str, Any]) -> None:
        self.send_to_parent(FrameEvent.PAYMENT_FLOW_APPROVED, order_data)

    def notify_canceled(self, order_id: str | None) -> None:
        self.send_to_parent(FrameEvent.PAYMENT_FLOW_CANCELED, {"orderId": order_id})

    def notify_error(self, order_id: str | None) -> None:
        self.send_to_parent(FrameEvent.PAYMENT_FLOW_ERROR, {"orderId": order_id})
