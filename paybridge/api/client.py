"""Async HTTP client for the merchant backend proxy.

The proxy owns processor credentials; this client only ever sees browser-safe
values (client token, order ids, capture results).
"""

from time import perf_counter
from typing import Any
from urllib.parse import quote

import httpx

from paybridge.api.schemas import (
    ClientToken,
    OrderCreateRequest,
    OrderRef,
    OrderResult,
    PaymentTokenResult,
    SetupToken,
)
from paybridge.common.config import settings
from paybridge.common.errors import ApiError, ErrorCode, SdkError, parse_error
from paybridge.common.logging import logger, order_id_ctx
from paybridge.common.metrics import api_request_duration_seconds, api_requests_total
from paybridge.common.retry import retry
from paybridge.common.tracing import get_tracer

CLIENT_TOKEN_PATH = "/paypal-api/auth/browser-safe-client-token"
CLIENT_ID_PATH = "/paypal-api/auth/browser-safe-client-id"
CREATE_ORDER_SAMPLE_DATA_PATH = "/paypal-api/checkout/orders/create-with-sample-data"
CREATE_ORDER_ONE_TIME_PAYMENT_PATH = "/paypal-api/checkout/orders/create-order-for-one-time-payment"
CREATE_ORDER_ONE_TIME_PAYMENT_CURRENCY_PATH = (
    "/paypal-api/checkout/orders/create-order-for-one-time-payment-with-currency-code-{currency}"
)
CREATE_ORDER_CUSTOM_PAYLOAD_PATH = "/paypal-api/checkout/orders/create-order-with-custom-payload"
CREATE_ORDER_PAYPAL_REDIRECT_PATH = (
    "/paypal-api/checkout/orders/create-order-for-paypal-one-time-payment-with-redirect"
)
ORDER_PATH = "/paypal-api/checkout/orders/{order_id}"
CAPTURE_ORDER_PATH = "/paypal-api/checkout/orders/{order_id}/capture"
SETUP_TOKEN_PATHS = {
    "default": "/paypal-api/vault/setup-token/create",
    "paypal": "/paypal-api/vault/create-setup-token-for-paypal-save-payment",
    "card": "/paypal-api/vault/create-setup-token-for-card-save-payment",
}
PAYMENT_TOKEN_PATH = "/paypal-api/vault/payment-token/create"

tracer = get_tracer(__name__)


class MerchantApiClient:
    """Thin wrapper over the proxy's REST surface.

    One `httpx.AsyncClient` is created lazily and reused; close it with
    `aclose()` or use the client as an async context manager.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = (base_url or settings.merchant_api_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds
        self._transport = transport
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "MerchantApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self._transport,
                headers=self._headers,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """Send one request and return `(status_code, body)`.

        Raises `ApiError` for non-2xx responses and `SdkError` for transport
        failures. `endpoint` is the route template used as the metric label.
        """

        start = perf_counter()
        status_code = 599
        with tracer.start_as_current_span(f"{method} {endpoint}"):
            try:
                response = await self.client().request(method, path, json=json)
                status_code = response.status_code
            except httpx.HTTPError as exc:
                logger.error("merchant_api_transport_error method=%s path=%s error=%s", method, path, exc)
                raise parse_error(exc) from exc
            finally:
                elapsed = max(0.0, perf_counter() - start)
                api_request_duration_seconds.labels(
                    service=settings.service_name,
                    endpoint=endpoint,
                    method=method,
                ).observe(elapsed)
                api_requests_total.labels(
                    service=settings.service_name,
                    endpoint=endpoint,
                    method=method,
                    status_code=str(status_code),
                ).inc()

        body = _decode_body(response)
        if status_code >= 400:
            logger.error("merchant_api_rejected method=%s path=%s status=%s", method, path, status_code)
            raise ApiError(f"{method} {path} failed with status {status_code}", status_code, body)
        return status_code, body

    async def get_browser_safe_client_token(self) -> str:
        """Fetch the short-lived token used to create an SDK instance."""

        async def fetch() -> ClientToken:
            _, body = await self._request("GET", CLIENT_TOKEN_PATH, CLIENT_TOKEN_PATH)
            if not body.get("accessToken"):
                raise SdkError(ErrorCode.INVALID_CLIENT_TOKEN, "client token response missing accessToken")
            return ClientToken.model_validate(body)

        token = await retry(fetch, dependency="merchant-api-auth")
        return token.access_token

    async def get_browser_safe_client_id(self) -> str:
        async def fetch() -> str:
            _, body = await self._request("GET", CLIENT_ID_PATH, CLIENT_ID_PATH)
            client_id = body.get("clientId")
            if not isinstance(client_id, str) or not client_id:
                raise SdkError(ErrorCode.INVALID_CONFIGURATION, "client id response missing clientId")
            return client_id

        return await retry(fetch, dependency="merchant-api-auth")

    async def create_order(
        self,
        request: OrderCreateRequest | None = None,
        path: str = CREATE_ORDER_SAMPLE_DATA_PATH,
    ) -> OrderRef:
        """Create an order and return `{orderId}` for the SDK.

        Never retried: a retry after a lost response could create a second order.
        """

        body = request.to_body() if request is not None else None
        return await self._create_order(path, path, body)

    async def create_order_with_custom_payload(self, payload: dict[str, Any]) -> OrderRef:
        """Create an order from a processor-shaped body passed through unchanged."""

        return await self._create_order(CREATE_ORDER_CUSTOM_PAYLOAD_PATH, CREATE_ORDER_CUSTOM_PAYLOAD_PATH, payload)

    async def create_order_for_currency(self, currency_code: str) -> OrderRef:
        """Create a one-time payment order priced in `currency_code` (e.g. EUR for Bancontact)."""

        if not currency_code or not currency_code.isalpha():
            raise SdkError(ErrorCode.INVALID_CONFIGURATION, f"invalid currency code: {currency_code!r}")
        path = CREATE_ORDER_ONE_TIME_PAYMENT_CURRENCY_PATH.format(currency=currency_code.lower())
        return await self._create_order(CREATE_ORDER_ONE_TIME_PAYMENT_CURRENCY_PATH, path, None)

    async def _create_order(self, endpoint: str, path: str, body: dict[str, Any] | None) -> OrderRef:
        status_code, data = await self._request("POST", endpoint, path, json=body)
        order_id = data.get("id")
        if not isinstance(order_id, str) or not order_id:
            raise ApiError("order response missing id", status_code, data)
        order_id_ctx.set(order_id)
        logger.info("order_created order_id=%s status=%s", order_id, data.get("status"))
        return OrderRef(order_id=order_id)

    async def create_order_for_one_time_payment(self, request: OrderCreateRequest | None = None) -> OrderRef:
        return await self.create_order(request, path=CREATE_ORDER_ONE_TIME_PAYMENT_PATH)

    async def create_order_for_paypal_redirect(self, request: OrderCreateRequest | None = None) -> OrderRef:
        return await self.create_order(request, path=CREATE_ORDER_PAYPAL_REDIRECT_PATH)

    async def get_order(self, order_id: str) -> OrderResult:
        path = ORDER_PATH.format(order_id=_segment(order_id))

        async def fetch() -> OrderResult:
            _, data = await self._request("GET", ORDER_PATH, path)
            return OrderResult.from_response(data)

        return await retry(fetch, dependency="merchant-api-orders")

    async def capture_order(self, order_id: str) -> OrderResult:
        """Capture an approved order. Never retried."""

        path = CAPTURE_ORDER_PATH.format(order_id=_segment(order_id))
        order_id_ctx.set(order_id)
        _, data = await self._request("POST", CAPTURE_ORDER_PATH, path)
        if "id" not in data:
            data = {**data, "id": order_id}
        result = OrderResult.from_response(data)
        logger.info("order_captured order_id=%s status=%s", order_id, result.status)
        return result

    async def create_setup_token(self, source: str = "paypal") -> SetupToken:
        """Create a vault setup token for the `default`, `paypal` or `card` save flow."""

        path = SETUP_TOKEN_PATHS.get(source)
        if path is None:
            raise SdkError(ErrorCode.INVALID_PAYMENT_METHOD, f"unsupported setup token source: {source}")
        status_code, data = await self._request("POST", path, path)
        if not data.get("id"):
            raise ApiError("setup token response missing id", status_code, data)
        return SetupToken.model_validate(data)

    async def create_payment_token(self, vault_setup_token: str) -> PaymentTokenResult:
        _, data = await self._request(
            "POST",
            PAYMENT_TOKEN_PATH,
            PAYMENT_TOKEN_PATH,
            json={"vaultSetupToken": vault_setup_token},
        )
        return PaymentTokenResult.model_validate(data)


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text}
    return data if isinstance(data, dict) else {"data": data}


def _segment(value: str) -> str:
    if not value:
        raise SdkError(ErrorCode.ORDER_NOT_FOUND, "order id is required")
    return quote(value, safe="")
