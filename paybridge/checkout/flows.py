"""End-to-end checkout flows.

Each flow follows the same shape: fetch a browser-safe credential (a client
token, or a client id for local payment methods), create an SDK instance,
check eligibility, create a session whose approve callback talks to the
merchant proxy, then start the session when the buyer pays.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from paybridge.api.client import CREATE_ORDER_ONE_TIME_PAYMENT_PATH, MerchantApiClient
from paybridge.api.schemas import OrderCreateRequest, OrderResult, PaymentTokenResult
from paybridge.common.config import settings
from paybridge.common.errors import ErrorCode, SdkError
from paybridge.common.events import EventEmitter
from paybridge.common.logging import logger
from paybridge.relay.bridge import ChildFrameBridge
from paybridge.sdk.presentation import (
    DEFAULT_PRESENTATION_MODES,
    PresentationMode,
    PresentationModeCandidate,
    release_order,
    start_with_fallback,
)
from paybridge.sdk.protocols import CardFieldsSession, PaymentMethod, SdkFactory, SdkInstance
from paybridge.sdk.sessions import (
    ApplePayPaymentSession,
    GooglePayPaymentSession,
    LocalPaymentSession,
    ManagedPaymentSession,
    SessionManager,
)

VAULT_WITHOUT_PAYMENT = "VAULT_WITHOUT_PAYMENT"


@dataclass
class FlowOutcome:
    """What the buyer ended up doing, as reported by session callbacks."""

    status: str = "PENDING"
    order_id: str | None = None
    capture: OrderResult | None = None
    payment_token: PaymentTokenResult | None = None
    error: Any = None
    data: dict[str, Any] = field(default_factory=dict)


class _SdkFlow:
    def __init__(
        self,
        api: MerchantApiClient,
        sdk: SdkFactory,
        currency_code: str | None = None,
        components: list[str] | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        self.api = api
        self.sdk = sdk
        self.currency_code = currency_code or settings.currency_code
        self.components = components or list(settings.sdk_components)
        self.sessions = SessionManager(events)
        self.sdk_instance: SdkInstance | None = None
        self.outcome = FlowOutcome()

    async def _create_instance(self) -> SdkInstance:
        client_token = await self.api.get_browser_safe_client_token()
        instance = await self.sdk.create_instance(
            client_token=client_token,
            components=self.components,
            page_type=settings.page_type,
        )
        self.sdk_instance = instance
        self.sessions.set_sdk_instance(instance)
        return instance

    def _on_cancel(self, data: dict[str, Any]) -> None:
        logger.info("payment_canceled order_id=%s", (data or {}).get("orderId"))
        self.outcome.status = "CANCELED"
        self.outcome.order_id = (data or {}).get("orderId")

    def _on_error(self, error: Any) -> None:
        logger.error("payment_error error=%s", error)
        self.outcome.status = "ERROR"
        self.outcome.error = error


class OneTimePaymentFlow(_SdkFlow):
    """Eligibility-gated one-time payment with presentation-mode fallback."""

    def __init__(
        self,
        api: MerchantApiClient,
        sdk: SdkFactory,
        payment_method: PaymentMethod = PaymentMethod.PAYPAL,
        presentation_modes: Sequence[PresentationModeCandidate] = DEFAULT_PRESENTATION_MODES,
        order_request: OrderCreateRequest | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api, sdk, **kwargs)
        self.payment_method = payment_method
        self.presentation_modes = presentation_modes
        self.order_request = order_request
        self.session: ManagedPaymentSession | None = None

    async def setup(self) -> bool:
        """Prepare the session; False when the method is not eligible."""

        try:
            instance = await self._create_instance()
            methods = await instance.find_eligible_methods(currency_code=self.currency_code)
        except SdkError:
            logger.exception("checkout_setup_failed payment_method=%s", self.payment_method.value)
            raise
        if not methods.is_eligible(self.payment_method.value):
            logger.info("payment_method_not_eligible payment_method=%s", self.payment_method.value)
            return False
        self.session = self.sessions.create_session(
            self.payment_method,
            {
                "on_approve": self._on_approve,
                "on_cancel": self._on_cancel,
                "on_error": self._on_error,
            },
        )
        return True

    async def create_order(self) -> dict[str, str]:
        order = await self.api.create_order(self.order_request)
        self.outcome.order_id = order.order_id
        return order.to_sdk()

    async def pay(self) -> str:
        """Start the session; returns the presentation mode that opened."""

        if self.session is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "call setup() before pay()")
        return await start_with_fallback(self.session, self.create_order, self.presentation_modes)

    async def _on_approve(self, data: dict[str, Any]) -> None:
        order_id = data["orderId"]
        capture = await self.api.capture_order(order_id)
        self.outcome.status = "APPROVED"
        self.outcome.order_id = order_id
        self.outcome.capture = capture
        logger.info("payment_captured order_id=%s status=%s", order_id, capture.status)


class SavePaymentFlow(_SdkFlow):
    """Vault a PayPal payment method without charging the buyer."""

    def __init__(
        self,
        api: MerchantApiClient,
        sdk: SdkFactory,
        setup_token_source: str = "default",
        **kwargs: Any,
    ) -> None:
        super().__init__(api, sdk, **kwargs)
        self.setup_token_source = setup_token_source
        self.session: ManagedPaymentSession | None = None

    async def setup(self) -> bool:
        instance = await self._create_instance()
        methods = await instance.find_eligible_methods(
            currency_code=self.currency_code,
            payment_flow=VAULT_WITHOUT_PAYMENT,
        )
        if not methods.is_eligible(PaymentMethod.PAYPAL.value):
            return False
        self.session = self.sessions.create_save_payment_session(
            {
                "on_approve": self._on_approve,
                "on_cancel": self._on_cancel,
                "on_error": self._on_error,
            }
        )
        return True

    async def create_setup_token(self) -> dict[str, str]:
        token = await self.api.create_setup_token(self.setup_token_source)
        return {"setupToken": token.id}

    async def save(self) -> None:
        if self.session is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "call setup() before save()")
        setup_token = asyncio.ensure_future(self.create_setup_token())
        try:
            await self.session.start({"presentationMode": PresentationMode.AUTO.value}, setup_token)
        except SdkError:
            release_order(setup_token)
            raise

    async def _on_approve(self, data: dict[str, Any]) -> None:
        result = await self.api.create_payment_token(data["vaultSetupToken"])
        self.outcome.payment_token = result
        self.outcome.status = "APPROVED" if result.succeeded else "ERROR"
        logger.info("payment_token_created status=%s", result.status)


class CardFieldsFlow(_SdkFlow):
    """Hosted card fields: submit against a fresh order, capture on success."""

    FIELD_TYPES = ("number", "cvv", "expiry")

    def __init__(self, api: MerchantApiClient, sdk: SdkFactory, **kwargs: Any) -> None:
        kwargs.setdefault("components", ["card-fields"])
        super().__init__(api, sdk, **kwargs)
        self.card_fields: CardFieldsSession | None = None
        self.components_by_type: dict[str, Any] = {}

    async def setup(self) -> None:
        # Eligibility does not report card; card fields are always offered.
        instance = await self._create_instance()
        self.card_fields = instance.create_card_fields_one_time_payment_session()
        for field_type in self.FIELD_TYPES:
            self.components_by_type[field_type] = self.card_fields.create_card_fields_component({"type": field_type})

    async def submit(self, billing_address: dict[str, Any] | None = None) -> FlowOutcome:
        if self.card_fields is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "call setup() before submit()")
        order = await self.api.create_order()
        options = {"billingAddress": billing_address} if billing_address else None
        result = await self.card_fields.submit(order.order_id, options)
        state = result.get("state")
        data = result.get("data") or {}
        self.outcome.order_id = data.get("orderId", order.order_id)
        self.outcome.data = data

        if state == "succeeded":
            self.outcome.capture = await self.api.capture_order(self.outcome.order_id)
            self.outcome.status = "APPROVED"
        elif state == "canceled":
            self.outcome.status = "CANCELED"
        elif state == "failed":
            self.outcome.status = "ERROR"
            self.outcome.error = data.get("message")
        else:
            raise SdkError(ErrorCode.UNKNOWN_ERROR, f"unexpected card fields state: {state}")
        logger.info("card_fields_submitted order_id=%s state=%s", self.outcome.order_id, state)
        return self.outcome


class IframeCheckoutFlow(_SdkFlow):
    """One-time payment running inside a sandboxed frame, reporting to the parent page."""

    def __init__(
        self,
        api: MerchantApiClient,
        sdk: SdkFactory,
        bridge: ChildFrameBridge,
        presentation_mode: str = PresentationMode.POPUP.value,
        **kwargs: Any,
    ) -> None:
        super().__init__(api, sdk, **kwargs)
        self.bridge = bridge
        self.initial_presentation_mode = presentation_mode
        self.session: ManagedPaymentSession | None = None

    async def setup(self) -> None:
        if self.bridge.setup_complete:
            return
        self.bridge.select_presentation_mode(self.initial_presentation_mode)
        self.bridge.setup()
        await self._create_instance()
        self.session = self.sessions.create_session(
            PaymentMethod.PAYPAL,
            {
                "on_approve": self._on_approve,
                "on_cancel": self._on_cancel,
                "on_error": self._on_error,
            },
        )
        self.bridge.payment_session = self.session

    async def create_order(self) -> dict[str, str]:
        order = await self.api.create_order()
        self.outcome.order_id = order.order_id
        return order.to_sdk()

    async def pay(self) -> None:
        """Tell the parent the flow is starting, then start the session.

        Start failures are logged; the parent learns about them through the
        session's error callback.
        """

        if self.session is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "call setup() before pay()")
        payment_flow_config = {
            "presentationMode": self.bridge.presentation_mode,
            "fullPageOverlay": {"enabled": False},
        }
        self.bridge.notify_flow_start(payment_flow_config)
        order = asyncio.ensure_future(self.create_order())
        try:
            await self.session.start(payment_flow_config, order)
        except SdkError as exc:
            release_order(order)
            logger.error("iframe_payment_start_failed code=%s error=%s", exc.code, exc)

    async def _on_approve(self, data: dict[str, Any]) -> None:
        capture = await self.api.capture_order(data["orderId"])
        self.outcome.status = "APPROVED"
        self.outcome.capture = capture
        self.bridge.notify_approved(capture.raw)

    def _on_cancel(self, data: dict[str, Any]) -> None:
        super()._on_cancel(data)
        self.bridge.notify_canceled((data or {}).get("orderId"))

    def _on_error(self, error: Any) -> None:
        super()._on_error(error)
        order_id = error.get("orderId") if isinstance(error, dict) else getattr(error, "order_id", None)
        self.bridge.notify_error(order_id)


class AlternativePaymentFlow(_SdkFlow):
    """Local payment method (Bancontact, BLIK, iDEAL, ...) paid in a popup.

    The buyer fills hosted payment fields first; the popup only opens once the
    fields validate.
    """

    def __init__(
        self,
        api: MerchantApiClient,
        sdk: SdkFactory,
        method: str,
        test_buyer_country: str | None = None,
        fields: Sequence[dict[str, Any]] = ({"type": "name"},),
        order_path: str = CREATE_ORDER_ONE_TIME_PAYMENT_PATH,
        order_payload: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("components", [f"{method.replace('_', '-')}-payments"])
        super().__init__(api, sdk, **kwargs)
        self.method = method
        self.test_buyer_country = test_buyer_country
        self.fields = fields
        self.order_path = order_path
        self.order_payload = order_payload
        self.session: LocalPaymentSession | None = None
        self.payment_fields: list[Any] = []

    async def _create_instance(self) -> SdkInstance:
        client_id = await self.api.get_browser_safe_client_id()
        options: dict[str, Any] = {"client_id": client_id, "components": self.components}
        if self.test_buyer_country:
            options["test_buyer_country"] = self.test_buyer_country
        instance = await self.sdk.create_instance(**options)
        self.sdk_instance = instance
        self.sessions.set_sdk_instance(instance)
        return instance

    async def setup(self) -> bool:
        instance = await self._create_instance()
        methods = await instance.find_eligible_methods(currency_code=self.currency_code)
        if not methods.is_eligible(self.method):
            logger.info("payment_method_not_eligible payment_method=%s", self.method)
            return False
        self.session = self.sessions.create_local_payment_session(
            self.method,
            {
                "on_approve": self._on_approve,
                "on_cancel": self._on_cancel,
                "on_error": self._on_error,
            },
        )
        self.payment_fields = [self.session.create_payment_fields(dict(spec)) for spec in self.fields]
        return True

    async def create_order(self) -> dict[str, str]:
        if self.order_payload is not None:
            order = await self.api.create_order_with_custom_payload(self.order_payload)
        else:
            order = await self.api.create_order(path=self.order_path)
        self.outcome.order_id = order.order_id
        return order.to_sdk()

    async def pay(self) -> bool:
        """Validate the payment fields and open the popup; False when validation fails."""

        if self.session is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "call setup() before pay()")
        if not await self.session.validate():
            logger.warning("payment_fields_invalid payment_method=%s", self.method)
            self.outcome.status = "INVALID"
            return False
        await start_with_fallback(
            self.session,
            self.create_order,
            (PresentationModeCandidate(PresentationMode.POPUP),),
        )
        return True

    async def _on_approve(self, data: dict[str, Any]) -> None:
        order_id = data["orderId"]
        capture = await self.api.capture_order(order_id)
        self.outcome.status = "APPROVED"
        self.outcome.order_id = order_id
        self.outcome.capture = capture
        logger.info("payment_captured order_id=%s status=%s", order_id, capture.status)


PAYER_ACTION_REQUIRED = "PAYER_ACTION_REQUIRED"


class WalletPaymentFlow(_SdkFlow):
    """Google Pay or Apple Pay: the wallet sheet authorizes, the SDK confirms, the proxy captures."""

    def __init__(
        self,
        api: MerchantApiClient,
        sdk: SdkFactory,
        wallet: PaymentMethod = PaymentMethod.GOOGLE_PAY,
        **kwargs: Any,
    ) -> None:
        if wallet not in (PaymentMethod.GOOGLE_PAY, PaymentMethod.APPLE_PAY):
            raise SdkError(ErrorCode.INVALID_PAYMENT_METHOD, f"not a wallet: {wallet!r}")
        kwargs.setdefault("components", [f"{wallet.value}-payments"])
        super().__init__(api, sdk, **kwargs)
        self.wallet = wallet
        self.session: GooglePayPaymentSession | ApplePayPaymentSession | None = None
        self.config: dict[str, Any] = {}

    async def setup(self) -> bool:
        instance = await self._create_instance()
        methods = await instance.find_eligible_methods(currency_code=self.currency_code)
        if not methods.is_eligible(self.wallet.value):
            logger.info("payment_method_not_eligible payment_method=%s", self.wallet.value)
            return False
        if self.wallet is PaymentMethod.GOOGLE_PAY:
            session = self.sessions.create_google_pay_session()
            self.config = await session.get_google_pay_config()
        else:
            session = self.sessions.create_apple_pay_session()
            self.config = await session.get_apple_pay_config()
        self.session = session
        return True

    async def validate_merchant(self, validation_url: str) -> dict[str, Any]:
        if not isinstance(self.session, ApplePayPaymentSession):
            raise SdkError(ErrorCode.INVALID_PAYMENT_METHOD, "merchant validation is Apple Pay only")
        return await self.session.validate_merchant(validation_url)

    async def authorize(self, payment: dict[str, Any]) -> dict[str, Any]:
        """Handle the wallet's authorization payload.

        Returns the result the wallet sheet expects: `{"transactionState": "SUCCESS"}`
        or `"ERROR"` with a message.
        """

        if self.session is None:
            raise SdkError(ErrorCode.SDK_NOT_INITIALIZED, "call setup() before authorize()")
        try:
            order = await self.api.create_order()
            self.outcome.order_id = order.order_id
            if isinstance(self.session, GooglePayPaymentSession):
                confirmation = await self.session.confirm_order(order.order_id, payment.get("paymentMethodData"))
            else:
                confirmation = await self.session.confirm_order(order.order_id, payment)
            status = (confirmation or {}).get("status")
            if status == PAYER_ACTION_REQUIRED:
                # Capture waits until the buyer completes the payer action.
                logger.info("payer_action_required order_id=%s", order.order_id)
                self.outcome.status = PAYER_ACTION_REQUIRED
            else:
                self.outcome.capture = await self.api.capture_order(order.order_id)
                self.outcome.status = "APPROVED"
        except SdkError as exc:
            logger.error("wallet_authorization_failed wallet=%s code=%s error=%s", self.wallet.value, exc.code, exc)
            self.outcome.status = "ERROR"
            self.outcome.error = exc
            return {"transactionState": "ERROR", "error": {"message": exc.message}}
        return {"transactionState": "SUCCESS"}
