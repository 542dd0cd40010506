"""Structural types for the hosted vendor SDK.

The SDK is an external collaborator; these protocols describe only the surface
the flows call, so any object (real bridge or test fake) that matches works.
"""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

OrderAwaitable = Awaitable[dict[str, Any]]
ApproveCallback = Callable[[dict[str, Any]], Awaitable[None]]
CancelCallback = Callable[[dict[str, Any]], None]
ErrorCallback = Callable[[Any], None]


class PaymentMethod(str, Enum):
    PAYPAL = "paypal"
    VENMO = "venmo"
    PAYLATER = "paylater"
    CREDIT = "credit"
    GOOGLE_PAY = "googlepay"
    APPLE_PAY = "applepay"


class PaymentSession(Protocol):
    async def start(self, options: dict[str, Any], order: OrderAwaitable) -> None: ...

    def cancel(self) -> None: ...

    def destroy(self) -> None: ...


class PaymentFieldsSession(PaymentSession, Protocol):
    """Local payment method session that collects buyer details in hosted fields."""

    def create_payment_fields(self, options: dict[str, Any]) -> Any: ...

    async def validate(self) -> bool: ...


class GooglePaySession(Protocol):
    async def get_google_pay_config(self) -> dict[str, Any]: ...

    async def confirm_order(self, options: dict[str, Any]) -> dict[str, Any]: ...


class ApplePaySession(PaymentSession, Protocol):
    async def get_apple_pay_config(self) -> dict[str, Any]: ...

    async def validate_merchant(self, options: dict[str, Any]) -> dict[str, Any]: ...

    async def confirm_order(self, options: dict[str, Any]) -> dict[str, Any]: ...


class CardFieldsSession(Protocol):
    def create_card_fields_component(self, options: dict[str, Any]) -> Any: ...

    async def submit(self, order_id: str, options: dict[str, Any] | None = None) -> dict[str, Any]: ...


class EligiblePaymentMethods(Protocol):
    def is_eligible(self, method: str) -> bool: ...


class SdkInstance(Protocol):
    """Vendor SDK instance.

    Local payment methods add one factory per method following the
    `create_<method>_one_time_payment_session(options)` naming, e.g.
    `create_bancontact_one_time_payment_session`; see `local_session_factory_name`.
    """

    async def find_eligible_methods(
        self, currency_code: str, payment_flow: str | None = None
    ) -> EligiblePaymentMethods: ...

    def create_paypal_one_time_payment_session(self, options: dict[str, Any]) -> PaymentSession: ...

    def create_venmo_one_time_payment_session(self, options: dict[str, Any]) -> PaymentSession: ...

    def create_paylater_one_time_payment_session(self, options: dict[str, Any]) -> PaymentSession: ...

    def create_paypal_credit_one_time_payment_session(self, options: dict[str, Any]) -> PaymentSession: ...

    def create_google_pay_one_time_payment_session(self) -> GooglePaySession: ...

    def create_apple_pay_one_time_payment_session(self, options: dict[str, Any]) -> ApplePaySession: ...

    def create_paypal_save_payment_session(self, options: dict[str, Any]) -> PaymentSession: ...

    def create_card_fields_one_time_payment_session(self) -> CardFieldsSession: ...


class SdkFactory(Protocol):
    """Creates SDK instances from exactly one browser-safe credential.

    Button and wallet flows authenticate with `client_token`; local payment
    methods use `client_id`, optionally pinned to a `test_buyer_country` in sandbox.
    """

    async def create_instance(
        self,
        components: list[str],
        client_token: str | None = None,
        client_id: str | None = None,
        page_type: str | None = None,
        test_buyer_country: str | None = None,
    ) -> SdkInstance: ...


SESSION_FACTORY_NAMES: dict[PaymentMethod, str] = {
    PaymentMethod.PAYPAL: "create_paypal_one_time_payment_session",
    PaymentMethod.VENMO: "create_venmo_one_time_payment_session",
    PaymentMethod.PAYLATER: "create_paylater_one_time_payment_session",
    PaymentMethod.CREDIT: "create_paypal_credit_one_time_payment_session",
}


def local_session_factory_name(method: str) -> str:
    """`"thailand_banks"` -> `"create_thailand_banks_one_time_payment_session"`."""

    return f"create_{method.strip().lower().replace('-', '_')}_one_time_payment_session"
