"""Lifecycle wrappers around vendor payment sessions.

Wrappers add what the vendor session does not: a guarded lifecycle, event
emission, and error normalization that keeps vendor error codes intact so the
presentation-mode fallback can classify them.
"""

from typing import Any
from uuid import uuid4

from paybridge.common.config import settings
from paybridge.common.errors import ErrorCode, SdkError
from paybridge.common.events import EventEmitter, SdkEventType
from paybridge.common.logging import logger, session_id_ctx
from paybridge.common.metrics import payment_outcomes_total
from paybridge.common.state_machine import validate_transition
from paybridge.sdk.protocols import (
    SESSION_FACTORY_NAMES,
    ApplePaySession,
    GooglePaySession,
    OrderAwaitable,
    PaymentFieldsSession,
    PaymentMethod,
    PaymentSession,
    SdkInstance,
    local_session_factory_name,
)


class ManagedPaymentSession:
    """One vendor session plus its lifecycle state.

    `payment_method` is a `PaymentMethod` for button and wallet sessions, or the
    vendor's method name (e.g. `"bancontact"`) for local payment methods.
    """

    def __init__(
        self,
        session: Any,
        payment_method: PaymentMethod | str,
        events: EventEmitter,
    ) -> None:
        self.session_id = str(uuid4())
        self.payment_method = payment_method
        self.method_name = payment_method.value if isinstance(payment_method, PaymentMethod) else payment_method
        self.events = events
        self.state = "IDLE"
        self._session = session

    def attach(self, session: Any) -> None:
        self._session = session

    @property
    def is_active(self) -> bool:
        return self.state == "ACTIVE"

    def _set_state(self, new_state: str) -> None:
        validate_transition(self.state, new_state)
        self.state = new_state

    def _require_session(self) -> Any:
        if self._session is None or self.state == "DESTROYED":
            raise SdkError(ErrorCode.SESSION_NOT_FOUND, f"{self.method_name} session not initialized")
        return self._session

    async def start(self, options: dict[str, Any], order: OrderAwaitable) -> None:
        """Start the vendor flow.

        Errors that carry a string `code` are re-raised as `SdkError` with that
        code; anything else becomes `PAYMENT_FAILED`.
        """

        if self.is_active:
            raise SdkError(ErrorCode.SESSION_ALREADY_ACTIVE, "Payment session is already active")
        session = self._require_session()

        session_id_ctx.set(self.session_id)
        self._set_state("ACTIVE")
        self.events.emit(
            SdkEventType.SESSION_STARTED,
            {"payment_method": self.method_name, "options": options},
        )
        try:
            await session.start(options, order)
        except Exception as exc:
            if self.state == "ACTIVE":
                self._set_state("FAILED")
            self.events.emit(
                SdkEventType.SESSION_ENDED,
                {"payment_method": self.method_name, "error": exc},
            )
            if isinstance(exc, SdkError):
                raise
            code = getattr(exc, "code", None)
            if isinstance(code, str) and code:
                raise SdkError(code, str(exc) or code, original_error=exc) from exc
            raise SdkError(
                ErrorCode.PAYMENT_FAILED,
                "Failed to start payment session",
                original_error=exc,
            ) from exc

    def finish(self, outcome: str) -> None:
        """Record a terminal callback outcome (`APPROVED`, `CANCELED`, `FAILED`).

        Late callbacks after cancel/destroy are ignored.
        """

        if not self.is_active:
            logger.info(
                "session_outcome_ignored session_id=%s state=%s outcome=%s",
                self.session_id,
                self.state,
                outcome,
            )
            return
        self._set_state(outcome)
        payment_outcomes_total.labels(
            service=settings.service_name,
            payment_method=self.method_name,
            outcome=outcome,
        ).inc()

    def cancel(self) -> None:
        if not self.is_active:
            return
        if self._session is not None:
            self._session.cancel()
        # The vendor may have fired on_cancel synchronously and recorded the outcome already.
        if self.is_active:
            self._set_state("CANCELED")
        self.events.emit(
            SdkEventType.SESSION_ENDED,
            {"payment_method": self.method_name, "cancelled": True},
        )

    def destroy(self) -> None:
        if self.state == "DESTROYED":
            return
        if self._session is not None:
            # Google Pay sessions expose no destroy().
            destroy = getattr(self._session, "destroy", None)
            if destroy is not None:
                destroy()
            self._session = None
        self._set_state("DESTROYED")
        self.events.emit(
            SdkEventType.SESSION_ENDED,
            {"payment_method": self.method_name, "destroyed": True},
        )


class LocalPaymentSession(ManagedPaymentSession):
    """Local payment method session: hosted buyer fields that must validate before start."""

    def create_payment_fields(self, options: dict[str, Any]) -> Any:
        session: PaymentFieldsSession = self._require_session()
        return session.create_payment_fields(options)

    async def validate(self) -> bool:
        session: PaymentFieldsSession = self._require_session()
        try:
            return bool(await session.validate())
        except SdkError:
            raise
        except Exception as exc:
            raise SdkError(
                ErrorCode.PAYMENT_FAILED,
                f"Failed to validate {self.method_name} payment fields",
                original_error=exc,
            ) from exc


class GooglePayPaymentSession(ManagedPaymentSession):
    def __init__(self, session: GooglePaySession | None, events: EventEmitter) -> None:
        super().__init__(session, PaymentMethod.GOOGLE_PAY, events)

    async def get_google_pay_config(self) -> dict[str, Any]:
        session: GooglePaySession = self._require_session()
        try:
            return await session.get_google_pay_config()
        except SdkError:
            raise
        except Exception as exc:
            raise SdkError(
                ErrorCode.INVALID_CONFIGURATION,
                "Failed to get Google Pay configuration",
                original_error=exc,
            ) from exc

    async def confirm_order(self, order_id: str, payment_method_data: Any) -> dict[str, Any]:
        session: GooglePaySession = self._require_session()
        try:
            return await session.confirm_order({"orderId": order_id, "paymentMethodData": payment_method_data})
        except SdkError:
            raise
        except Exception as exc:
            raise SdkError(
                ErrorCode.PAYMENT_FAILED,
                "Failed to confirm Google Pay order",
                order_id=order_id,
                original_error=exc,
            ) from exc


class ApplePayPaymentSession(ManagedPaymentSession):
    def __init__(self, session: ApplePaySession | None, events: EventEmitter) -> None:
        super().__init__(session, PaymentMethod.APPLE_PAY, events)

    async def get_apple_pay_config(self) -> dict[str, Any]:
        session: ApplePaySession = self._require_session()
        try:
            return await session.get_apple_pay_config()
        except SdkError:
            raise
        except Exception as exc:
            raise SdkError(
                ErrorCode.INVALID_CONFIGURATION,
                "Failed to get Apple Pay configuration",
                original_error=exc,
            ) from exc

    async def validate_merchant(self, validation_url: str) -> dict[str, Any]:
        """Exchange Apple's validation URL for a merchant session payload."""

        session: ApplePaySession = self._require_session()
        try:
            return await session.validate_merchant({"validationUrl": validation_url})
        except SdkError:
            raise
        except Exception as exc:
            raise SdkError(
                ErrorCode.PAYMENT_FAILED,
                "Failed to validate Apple Pay merchant",
                original_error=exc,
            ) from exc

    async def confirm_order(self, order_id: str, payment: dict[str, Any]) -> dict[str, Any]:
        session: ApplePaySession = self._require_session()
        try:
            return await session.confirm_order({"orderId": order_id, **payment})
        except SdkError:
            raise
        except Exception as exc:
            raise SdkError(
                ErrorCode.PAYMENT_FAILED,
                "Failed to confirm Apple Pay order",
                order_id=order_id,
                original_error=exc,
            ) from exc


class SessionManager:
    """Creates wrapped sessions from an SDK instance and tracks them."""

    def __init__(self, events: EventEmitter | None = None) -> None:
        self.events = events or EventEmitter()
        self.sdk_instance: SdkInstance | None = None
        self.sessions: dict[str, ManagedPaymentSession] = {}

    def set_sdk_instance(self, instance: SdkInstance) -> None:
        self.sdk_instance = instance

    def _require_instance(self) -> SdkInstance:
        if self.sdk_instance is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "SDK instance not initialized")
        return self.sdk_instance

    def create_session(
        self,
        payment_method: PaymentMethod,
        options: dict[str, Any],
    ) -> ManagedPaymentSession:
        """Create a one-time payment session for `payment_method`."""

        if payment_method is PaymentMethod.GOOGLE_PAY:
            return self.create_google_pay_session()
        if payment_method is PaymentMethod.APPLE_PAY:
            return self.create_apple_pay_session(options)
        factory_name = SESSION_FACTORY_NAMES.get(payment_method)
        if factory_name is None:
            raise SdkError(
                ErrorCode.INVALID_PAYMENT_METHOD,
                f"no one-time payment session for {payment_method!r}",
            )
        factory = getattr(self._require_instance(), factory_name)
        wrapped = ManagedPaymentSession(None, payment_method, self.events)
        return self._track(wrapped, factory(self._wrap_options(options, wrapped)))

    def create_local_payment_session(self, method: str, options: dict[str, Any]) -> LocalPaymentSession:
        """Create a session for a local payment method such as `bancontact` or `blik`."""

        instance = self._require_instance()
        factory = getattr(instance, local_session_factory_name(method), None)
        if factory is None:
            raise SdkError(ErrorCode.INVALID_PAYMENT_METHOD, f"SDK has no session for {method}")
        wrapped = LocalPaymentSession(None, method, self.events)
        return self._track(wrapped, factory(self._wrap_options(options, wrapped)))

    def create_google_pay_session(self) -> GooglePayPaymentSession:
        instance = self._require_instance()
        wrapped = GooglePayPaymentSession(None, self.events)
        return self._track(wrapped, instance.create_google_pay_one_time_payment_session())

    def create_apple_pay_session(self, options: dict[str, Any] | None = None) -> ApplePayPaymentSession:
        instance = self._require_instance()
        wrapped = ApplePayPaymentSession(None, self.events)
        session = instance.create_apple_pay_one_time_payment_session(self._wrap_options(options or {}, wrapped))
        return self._track(wrapped, session)

    def create_save_payment_session(self, options: dict[str, Any]) -> ManagedPaymentSession:
        instance = self._require_instance()
        wrapped = ManagedPaymentSession(None, PaymentMethod.PAYPAL, self.events)
        session = instance.create_paypal_save_payment_session(self._wrap_options(options, wrapped))
        return self._track(wrapped, session)

    def _track(self, wrapped, session: PaymentSession | GooglePaySession):
        wrapped.attach(session)
        self.sessions[wrapped.session_id] = wrapped
        logger.info("session_created session_id=%s payment_method=%s", wrapped.session_id, wrapped.method_name)
        return wrapped

    def _wrap_options(self, options: dict[str, Any], wrapped: ManagedPaymentSession) -> dict[str, Any]:
        """Emit lifecycle events around the merchant's callbacks."""

        on_approve = options.get("on_approve")
        on_cancel = options.get("on_cancel")
        on_error = options.get("on_error")
        method = wrapped.method_name

        async def approve(data: dict[str, Any]) -> None:
            wrapped.finish("APPROVED")
            self.events.emit(SdkEventType.PAYMENT_APPROVED, {"payment_method": method, "data": data})
            if on_approve is not None:
                await on_approve(data)

        def cancel(data: dict[str, Any]) -> None:
            wrapped.finish("CANCELED")
            self.events.emit(SdkEventType.PAYMENT_CANCELLED, {"payment_method": method, "data": data})
            if on_cancel is not None:
                on_cancel(data)

        def error(err: Any) -> None:
            wrapped.finish("FAILED")
            self.events.emit(SdkEventType.PAYMENT_ERROR, {"payment_method": method, "error": err})
            if on_error is not None:
                on_error(err)

        return {**options, "on_approve": approve, "on_cancel": cancel, "on_error": error}

    def destroy_all(self) -> None:
        for session in list(self.sessions.values()):
            try:
                session.destroy()
            except Exception as exc:
                logger.error("session_destroy_failed session_id=%s error=%s", session.session_id, exc)
        self.sessions.clear()

    def active_sessions_count(self) -> int:
        return sum(1 for session in self.sessions.values() if session.is_active)
