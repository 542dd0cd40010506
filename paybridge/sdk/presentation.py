"""Presentation-mode fallback for starting a payment session.

Browsers differ in what they allow: the Payment Handler API may be missing and
popups may be blocked. The sequence tries each mode in order and moves on only
when the failure is the one that mode is known to produce in that situation.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from paybridge.common.config import settings
from paybridge.common.errors import ErrorCode, SdkError
from paybridge.common.logging import logger, presentation_mode_ctx
from paybridge.common.metrics import presentation_attempts_total, presentation_fallbacks_total
from paybridge.common.tracing import get_tracer

tracer = get_tracer(__name__)


class PresentationMode(str, Enum):
    AUTO = "auto"
    PAYMENT_HANDLER = "payment-handler"
    POPUP = "popup"
    MODAL = "modal"
    REDIRECT = "redirect"


ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE = "ERR_FLOW_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE"
ERR_UNABLE_TO_OPEN_POPUP = "ERR_DEV_UNABLE_TO_OPEN_POPUP"


@dataclass(frozen=True)
class PresentationModeCandidate:
    presentation_mode: PresentationMode | str
    recoverable_error_code: str | None = None

    @property
    def mode(self) -> str:
        mode = self.presentation_mode
        return mode.value if isinstance(mode, PresentationMode) else mode


DEFAULT_PRESENTATION_MODES: tuple[PresentationModeCandidate, ...] = (
    PresentationModeCandidate(PresentationMode.PAYMENT_HANDLER, ERR_PAYMENT_HANDLER_BROWSER_INCOMPATIBLE),
    PresentationModeCandidate(PresentationMode.POPUP, ERR_UNABLE_TO_OPEN_POPUP),
    PresentationModeCandidate(PresentationMode.MODAL),
)


class StartableSession(Protocol):
    async def start(self, options: dict[str, Any], order: Awaitable[Any]) -> None: ...


OrderFactory = Callable[[], Awaitable[Any]]


def _error_code(exc: BaseException) -> str | None:
    code = getattr(exc, "code", None)
    if isinstance(code, Enum):
        return code.value
    return code if isinstance(code, str) else None


async def start_with_fallback(
    session: StartableSession,
    order_factory: OrderFactory,
    candidates: Sequence[PresentationModeCandidate] = DEFAULT_PRESENTATION_MODES,
    extra_options: dict[str, Any] | None = None,
) -> str:
    """Start `session` with the first presentation mode that does not fail.

    The order is created once and the same awaitable is handed to every attempt.
    A failure moves to the next candidate only when its code equals the
    candidate's `recoverable_error_code`; any other failure propagates as is.
    Returns the presentation mode that started successfully.
    """

    if not candidates:
        raise SdkError(ErrorCode.INVALID_CONFIGURATION, "at least one presentation mode is required")

    order = asyncio.ensure_future(order_factory())
    last_error: BaseException | None = None
    with tracer.start_as_current_span("payment_session.start_with_fallback") as span:
        for candidate in candidates:
            mode = candidate.mode
            mode_token = presentation_mode_ctx.set(mode)
            try:
                options = {**(extra_options or {}), "presentationMode": mode}
                span.add_event("attempt", {"presentation_mode": mode})
                try:
                    await session.start(options, order)
                except Exception as exc:
                    code = _error_code(exc)
                    recoverable = (
                        candidate.recoverable_error_code is not None and code == candidate.recoverable_error_code
                    )
                    presentation_attempts_total.labels(
                        service=settings.service_name,
                        presentation_mode=mode,
                        outcome="recoverable" if recoverable else "error",
                    ).inc()
                    if not recoverable:
                        logger.error("presentation_mode_failed mode=%s code=%s error=%s", mode, code, exc)
                        release_order(order)
                        raise
                    presentation_fallbacks_total.labels(
                        service=settings.service_name,
                        from_mode=mode,
                        error_code=code,
                    ).inc()
                    logger.warning("presentation_mode_fallback mode=%s code=%s", mode, code)
                    last_error = exc
                    continue
                presentation_attempts_total.labels(
                    service=settings.service_name,
                    presentation_mode=mode,
                    outcome="started",
                ).inc()
                span.set_attribute("presentation_mode", mode)
                logger.info("presentation_mode_started mode=%s", mode)
                return mode
            finally:
                presentation_mode_ctx.reset(mode_token)

    release_order(order)
    # Browser pages stop silently once the list runs out; callers here get the final mode's error.
    if last_error is None:
        raise SdkError(ErrorCode.UNKNOWN_ERROR, "no presentation mode could be started")
    raise last_error


def release_order(order: "asyncio.Future[Any]") -> None:
    """Make sure a failure of an order the SDK never consumed is still retrieved."""

    if order.done():
        if not order.cancelled():
            order.exception()
        return
    order.add_done_callback(lambda fut: fut.cancelled() or fut.exception())
