"""Test doubles for the vendor SDK and the merchant proxy."""

import json
from typing import Any

import httpx

from paybridge.api.client import MerchantApiClient


class VendorError(Exception):
    """Error shaped like the vendor SDK's: message plus a string `code`."""

    def __init__(self, code: str, message: str = "vendor failure") -> None:
        super().__init__(message)
        self.code = code


class FakeSession:
    """Scripted vendor session.

    `failures` holds one entry per `start` call: an exception to raise or None.
    After a successful start the session resolves the order and fires the
    callback named by `complete_with` (approve/cancel/error/None). With
    `cancel_fires_callback` set, `cancel()` calls `on_cancel` synchronously the
    way the vendor SDK does. `valid` scripts the payment fields' `validate()`.
    """

    def __init__(
        self,
        options: dict[str, Any],
        failures=None,
        complete_with: str | None = None,
        cancel_fires_callback: bool = False,
        valid: bool = True,
    ) -> None:
        self.options = options
        self.cancel_fires_callback = cancel_fires_callback
        self.valid = valid
        self.payment_fields: list[dict[str, Any]] = []
        self.validations = 0
        self.failures = list(failures or [])
        self.complete_with = complete_with
        self.start_calls: list[dict[str, Any]] = []
        self.orders: list[Any] = []
        self.cancelled = 0
        self.destroyed = 0

    async def start(self, options: dict[str, Any], order) -> None:
        self.start_calls.append(options)
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
        resolved = await order
        self.orders.append(resolved)
        if self.complete_with == "approve":
            data = dict(resolved)
            if "setupToken" in resolved:
                data = {"vaultSetupToken": resolved["setupToken"]}
            await self.options["on_approve"](data)
        elif self.complete_with == "cancel":
            self.options["on_cancel"]({"orderId": resolved.get("orderId")})
        elif self.complete_with == "error":
            self.options["on_error"]({"orderId": resolved.get("orderId"), "message": "declined"})

    def cancel(self) -> None:
        self.cancelled += 1
        if self.cancel_fires_callback:
            order = self.orders[-1] if self.orders else {}
            self.options["on_cancel"]({"orderId": order.get("orderId")})

    def create_payment_fields(self, options: dict[str, Any]) -> dict[str, Any]:
        self.payment_fields.append(options)
        return {"field": options["type"]}

    async def validate(self) -> bool:
        self.validations += 1
        return self.valid

    def destroy(self) -> None:
        self.destroyed += 1


class FakeEligibility:
    def __init__(self, eligible: set[str]) -> None:
        self.eligible = eligible

    def is_eligible(self, method: str) -> bool:
        return method in self.eligible


class FakeCardFields:
    def __init__(self, result: dict[str, Any]) -> None:
        self.result = result
        self.components: list[dict[str, Any]] = []
        self.submissions: list[tuple[str, Any]] = []

    def create_card_fields_component(self, options: dict[str, Any]) -> dict[str, Any]:
        self.components.append(options)
        return {"component": options["type"]}

    async def submit(self, order_id: str, options: dict[str, Any] | None = None) -> dict[str, Any]:
        self.submissions.append((order_id, options))
        data = {"orderId": order_id, **self.result.get("data", {})}
        return {"state": self.result["state"], "data": data}


class FakeWalletSession:
    """Google Pay and Apple Pay session; `fail` names a method that raises."""

    def __init__(self, confirm_status: str = "APPROVED", fail: str | None = None) -> None:
        self.confirm_status = confirm_status
        self.fail = fail
        self.options: dict[str, Any] = {}
        self.confirmations: list[dict[str, Any]] = []
        self.validations: list[dict[str, Any]] = []
        self.cancelled = 0

    def _maybe_fail(self, name: str) -> None:
        if self.fail == name:
            raise RuntimeError(f"{name} failed")

    async def get_google_pay_config(self) -> dict[str, Any]:
        self._maybe_fail("config")
        return {"allowedPaymentMethods": [{"type": "CARD"}], "merchantInfo": {"merchantId": "TEST"}}

    async def get_apple_pay_config(self) -> dict[str, Any]:
        self._maybe_fail("config")
        return {"merchantCapabilities": ["supports3DS"], "supportedNetworks": ["visa"]}

    async def validate_merchant(self, options: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail("validate_merchant")
        self.validations.append(options)
        return {"merchantSession": {"validationUrl": options["validationUrl"]}}

    async def confirm_order(self, options: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail("confirm")
        self.confirmations.append(options)
        return {"id": options["orderId"], "status": self.confirm_status}

    def cancel(self) -> None:
        self.cancelled += 1


class FakeSdkInstance:
    def __init__(
        self,
        eligible: set[str] | None = None,
        failures=None,
        complete_with: str | None = "approve",
        card_result: dict[str, Any] | None = None,
        cancel_fires_callback: bool = False,
        valid: bool = True,
        local_methods: set[str] | None = None,
        wallet: FakeWalletSession | None = None,
    ) -> None:
        self.cancel_fires_callback = cancel_fires_callback
        self.valid = valid
        self.local_methods = local_methods if local_methods is not None else {"bancontact", "blik"}
        self.wallet = wallet or FakeWalletSession()
        self.eligibility = FakeEligibility(eligible if eligible is not None else {"paypal", "venmo"})
        self.failures = failures
        self.complete_with = complete_with
        self.card_fields = FakeCardFields(card_result or {"state": "succeeded"})
        self.sessions: list[FakeSession] = []
        self.eligibility_calls: list[dict[str, Any]] = []

    async def find_eligible_methods(self, currency_code: str, payment_flow: str | None = None) -> FakeEligibility:
        self.eligibility_calls.append({"currency_code": currency_code, "payment_flow": payment_flow})
        return self.eligibility

    def _session(self, options: dict[str, Any]) -> FakeSession:
        session = FakeSession(options, self.failures, self.complete_with, self.cancel_fires_callback, self.valid)
        self.sessions.append(session)
        return session

    def create_paypal_one_time_payment_session(self, options):
        return self._session(options)

    def create_venmo_one_time_payment_session(self, options):
        return self._session(options)

    def create_paylater_one_time_payment_session(self, options):
        return self._session(options)

    def create_paypal_credit_one_time_payment_session(self, options):
        return self._session(options)

    def create_paypal_save_payment_session(self, options):
        return self._session(options)

    def create_card_fields_one_time_payment_session(self):
        return self.card_fields

    def create_google_pay_one_time_payment_session(self):
        return self.wallet

    def create_apple_pay_one_time_payment_session(self, options):
        self.wallet.options = options
        return self.wallet

    def __getattr__(self, name: str):
        # Local payment method factories: create_<method>_one_time_payment_session.
        prefix, suffix = "create_", "_one_time_payment_session"
        if name.startswith(prefix) and name.endswith(suffix):
            method = name[len(prefix) : -len(suffix)]
            if method in self.local_methods:
                return self._session
        raise AttributeError(name)


class FakeSdkFactory:
    def __init__(self, instance: FakeSdkInstance | None = None) -> None:
        self.instance = instance or FakeSdkInstance()
        self.calls: list[dict[str, Any]] = []

    async def create_instance(self, **options: Any) -> FakeSdkInstance:
        self.calls.append(options)
        return self.instance


class FakeProxy:
    """Route table for `httpx.MockTransport`; records every request."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, json_body: Any = None, content: bytes | None = None):
        if content is not None:
            response = httpx.Response(status_code, content=content)
        else:
            response = httpx.Response(status_code, json=json_body if json_body is not None else {})
        self.routes.setdefault((method, path), []).append(response)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "no route"})
        # The last response for a route repeats.
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_of(self, request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    def client(self) -> MerchantApiClient:
        return MerchantApiClient(base_url="http://merchant.test", transport=httpx.MockTransport(self.handler))


def standard_proxy(order_id: str = "53S42029KD820825W") -> FakeProxy:
    """Proxy answering credential, order creation, capture and vault routes."""

    proxy = FakeProxy()
    proxy.add(
        "GET",
        "/paypal-api/auth/browser-safe-client-token",
        json_body={"accessToken": "browser-safe-token", "expiresIn": 900, "scope": "s", "tokenType": "Bearer"},
    )
    proxy.add("GET", "/paypal-api/auth/browser-safe-client-id", json_body={"clientId": "browser-safe-client-id"})
    proxy.add("POST", "/paypal-api/checkout/orders/create-with-sample-data", 201, {"id": order_id, "status": "CREATED"})
    for path in (
        "/paypal-api/checkout/orders/create-order-for-one-time-payment",
        "/paypal-api/checkout/orders/create-order-for-one-time-payment-with-currency-code-eur",
        "/paypal-api/checkout/orders/create-order-with-custom-payload",
    ):
        proxy.add("POST", path, 201, {"id": order_id, "status": "CREATED"})
    proxy.add(
        "POST",
        f"/paypal-api/checkout/orders/{order_id}/capture",
        201,
        {"id": order_id, "status": "COMPLETED"},
    )
    proxy.add("POST", "/paypal-api/vault/setup-token/create", 200, {"id": "SETUP-1", "status": "CREATED"})
    proxy.add(
        "POST",
        "/paypal-api/vault/payment-token/create",
        200,
        {"status": "SUCCESS", "description": "Payment token saved to database for future transactions"},
    )
    return proxy
