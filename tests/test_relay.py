"""Cross-frame relay between the merchant page and the payment frame."""

import pytest

from paybridge.common.errors import SdkError
from paybridge.relay.bridge import ChildFrameBridge, ParentFrameBridge
from paybridge.relay.channel import FrameWindow, origin_of
from paybridge.relay.messages import FrameEvent, FrameMessage, parse_frame_message

PARENT_URL = "http://localhost:3001/checkout"
CHILD_URL = "http://localhost:3000/?origin=http://localhost:3001"


class CancelSpy:
    def __init__(self):
        self.cancelled = 0

    def cancel(self):
        self.cancelled += 1


def wire():
    parent_window = FrameWindow(PARENT_URL)
    child_window = FrameWindow(CHILD_URL, parent=parent_window)
    parent = ParentFrameBridge(parent_window, child_window, expected_origin="http://localhost:3000")
    child = ChildFrameBridge(child_window)
    parent.setup()
    child.setup()
    return parent, child


def test_origin_of_strips_path_and_query():
    assert origin_of("https://shop.example:8443/pay?x=1") == "https://shop.example:8443"
    with pytest.raises(ValueError):
        origin_of("/relative/path")


def test_post_message_respects_target_origin():
    window = FrameWindow("http://localhost:3000/")
    received = []
    window.add_message_listener(received.append)

    assert window.post_message({"eventName": "x"}, "http://localhost:9999") is False
    assert window.post_message({"eventName": "x"}, "*") is True
    assert received[0].origin == "null"


def test_post_message_delivers_a_copy():
    sender = FrameWindow("http://localhost:3001/")
    window = FrameWindow("http://localhost:3000/")
    received = []
    window.add_message_listener(received.append)
    payload = {"data": {"orderId": "O-1"}}

    window.post_message(payload, window.origin, sender=sender)
    payload["data"]["orderId"] = "changed"

    assert received[0].data == {"data": {"orderId": "O-1"}}
    assert received[0].origin == "http://localhost:3001"


def test_parse_frame_message_ignores_unknown_payloads():
    assert parse_frame_message("payment-flow-start") is None
    assert parse_frame_message({"eventName": "not-a-real-event"}) is None
    assert parse_frame_message({"eventName": "payment-flow-start"}).event_name is FrameEvent.PAYMENT_FLOW_START


def test_popup_mode_toggles_overlay():
    parent, child = wire()

    child.select_presentation_mode("popup")
    child.notify_flow_start({"presentationMode": "popup"})
    assert parent.presentation_mode == "popup"
    assert parent.overlay.is_open

    child.notify_approved({"id": "O-1", "status": "COMPLETED"})
    assert not parent.overlay.is_open
    assert parent.last_message.data == {
        "eventName": "payment-flow-approved",
        "data": {"id": "O-1", "status": "COMPLETED"},
    }


def test_modal_mode_expands_frame():
    parent, child = wire()

    child.select_presentation_mode("modal")
    child.notify_flow_start({"presentationMode": "modal"})
    assert parent.frame.is_full_window
    assert not parent.overlay.is_open

    child.notify_canceled("O-1")
    assert not parent.frame.is_full_window


def test_unhandled_mode_changes_nothing():
    parent, child = wire()

    child.select_presentation_mode("payment-handler")
    child.notify_flow_start({})

    assert not parent.overlay.is_open
    assert not parent.frame.is_full_window


def test_parent_drops_messages_from_unexpected_origin():
    parent, _ = wire()
    intruder = FrameWindow("https://evil.example/")

    parent.window.post_message(
        FrameMessage(event_name=FrameEvent.PRESENTATION_MODE_CHANGED, data={"presentationMode": "popup"}).to_payload(),
        "*",
        sender=intruder,
    )

    assert parent.last_message is None
    assert parent.presentation_mode is None


def test_close_overlay_cancels_child_payment_session():
    parent, child = wire()
    session = CancelSpy()
    child.payment_session = session
    child.select_presentation_mode("popup")
    child.notify_flow_start({})

    parent.close_overlay()

    assert not parent.overlay.is_open
    assert session.cancelled == 1
    assert child.last_message == {"eventName": "close-payment-window"}


def test_child_drops_messages_not_from_parent_origin():
    _, child = wire()
    session = CancelSpy()
    child.payment_session = session
    intruder = FrameWindow("https://evil.example/")

    child.window.post_message({"eventName": "close-payment-window"}, "*", sender=intruder)

    assert session.cancelled == 0
    assert child.last_message is None


def test_child_without_origin_parameter_cannot_send():
    parent_window = FrameWindow(PARENT_URL)
    child = ChildFrameBridge(FrameWindow("http://localhost:3000/", parent=parent_window))

    with pytest.raises(SdkError) as exc_info:
        child.notify_flow_start({})

    assert exc_info.value.code == "INVALID_CONFIGURATION"


def test_setup_registers_listener_once():
    parent, child = wire()
    parent.setup()
    seen = []
    parent.window.add_message_listener(seen.append)

    child.select_presentation_mode("popup")

    assert len(seen) == 1
    assert parent.presentation_mode == "popup"
