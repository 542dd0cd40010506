"""Presentation-mode fallback sequencing."""

import pytest

from paybridge.common.errors import SdkError
from paybridge.common.logging import presentation_mode_ctx
from paybridge.sdk.presentation import (
    ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE,
    ERR_UNABLE_TO_OPEN_POPUP,
    PresentationMode,
    PresentationModeCandidate,
    start_with_fallback,
)
from paybridge.sdk.protocols import PaymentMethod
from paybridge.sdk.sessions import SessionManager
from tests.fakes import FakeSdkInstance, VendorError


def session_with(failures, complete_with=None):
    instance = FakeSdkInstance(failures=failures, complete_with=complete_with)
    manager = SessionManager()
    manager.set_sdk_instance(instance)
    return manager.create_session(PaymentMethod.PAYPAL, {}), instance


class OrderFactory:
    def __init__(self, order_id="O-1"):
        self.order_id = order_id
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return {"orderId": self.order_id}


@pytest.mark.asyncio
async def test_first_mode_that_starts_wins():
    session, instance = session_with([None])
    orders = OrderFactory()

    mode = await start_with_fallback(session, orders)

    assert mode == "payment-handler"
    assert instance.sessions[0].start_calls == [{"presentationMode": "payment-handler"}]


@pytest.mark.asyncio
async def test_falls_back_through_popup_to_modal_with_one_order():
    session, instance = session_with(
        [
            VendorError(ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE),
            VendorError(ERR_UNABLE_TO_OPEN_POPUP),
            None,
        ]
    )
    orders = OrderFactory()

    mode = await start_with_fallback(session, orders)

    vendor = instance.sessions[0]
    assert mode == "modal"
    assert [call["presentationMode"] for call in vendor.start_calls] == ["payment-handler", "popup", "modal"]
    assert orders.calls == 1
    assert vendor.orders == [{"orderId": "O-1"}]


@pytest.mark.asyncio
async def test_error_code_must_match_the_failing_mode():
    """A popup error raised by the payment-handler attempt is not a fallback signal."""

    session, instance = session_with([VendorError(ERR_UNABLE_TO_OPEN_POPUP)])

    with pytest.raises(SdkError) as exc_info:
        await start_with_fallback(session, OrderFactory())

    assert exc_info.value.code == ERR_UNABLE_TO_OPEN_POPUP
    assert len(instance.sessions[0].start_calls) == 1


@pytest.mark.asyncio
async def test_unrecoverable_error_propagates():
    session, instance = session_with(
        [VendorError(ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE), VendorError("ERR_FLOW_INSTRUMENT_DECLINED")]
    )

    with pytest.raises(SdkError) as exc_info:
        await start_with_fallback(session, OrderFactory())

    assert exc_info.value.code == "ERR_FLOW_INSTRUMENT_DECLINED"
    assert len(instance.sessions[0].start_calls) == 2


@pytest.mark.asyncio
async def test_last_error_raised_when_every_mode_recovers():
    candidates = [
        PresentationModeCandidate(PresentationMode.PAYMENT_HANDLER, ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE),
        PresentationModeCandidate(PresentationMode.POPUP, ERR_UNABLE_TO_OPEN_POPUP),
    ]
    session, _ = session_with(
        [VendorError(ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE), VendorError(ERR_UNABLE_TO_OPEN_POPUP)]
    )

    with pytest.raises(SdkError) as exc_info:
        await start_with_fallback(session, OrderFactory(), candidates)

    assert exc_info.value.code == ERR_UNABLE_TO_OPEN_POPUP


@pytest.mark.asyncio
async def test_extra_options_are_merged_under_presentation_mode():
    session, instance = session_with([None])

    await start_with_fallback(
        session,
        OrderFactory(),
        [PresentationModeCandidate("popup")],
        extra_options={"fullPageOverlay": {"enabled": False}, "presentationMode": "ignored"},
    )

    assert instance.sessions[0].start_calls == [
        {"fullPageOverlay": {"enabled": False}, "presentationMode": "popup"}
    ]


@pytest.mark.asyncio
async def test_empty_candidate_list_is_a_configuration_error():
    session, _ = session_with([])
    orders = OrderFactory()

    with pytest.raises(SdkError) as exc_info:
        await start_with_fallback(session, orders, [])

    assert exc_info.value.code == "INVALID_CONFIGURATION"
    assert orders.calls == 0


@pytest.mark.asyncio
async def test_presentation_mode_log_context_is_restored():
    seen = []

    class RecordingSession:
        def __init__(self, failures):
            self.failures = list(failures)

        async def start(self, options, order):
            seen.append(presentation_mode_ctx.get())
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
            await order

    session = RecordingSession([VendorError(ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE), None])
    assert await start_with_fallback(session, OrderFactory()) == "popup"
    assert seen == ["payment-handler", "popup"]
    assert presentation_mode_ctx.get() == ""

    with pytest.raises(VendorError):
        await start_with_fallback(RecordingSession([VendorError("ERR_SOMETHING_ELSE")]), OrderFactory())
    assert presentation_mode_ctx.get() == ""
