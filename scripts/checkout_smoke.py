"""Create (and optionally capture) one order against a running merchant proxy.

Useful for checking proxy wiring and credentials before running browser flows.
"""

import argparse
import asyncio
import json

from paybridge.api.client import CREATE_ORDER_SAMPLE_DATA_PATH, MerchantApiClient
from paybridge.api.schemas import CartItem, OrderCreateRequest
from paybridge.common.config import settings
from paybridge.common.errors import SdkError
from paybridge.common.logging import configure_logging
from paybridge.common.startup import log_startup_config
from paybridge.common.tracing import setup_tracing, shutdown_tracing


async def run(base_url: str, path: str, cart: list[str], currency_code: str | None, capture: bool) -> int:
    """Fetch a client token, create an order, optionally capture it."""

    request = None
    if cart or currency_code:
        items = []
        for entry in cart:
            sku, _, quantity = entry.partition(":")
            items.append(CartItem(sku=sku, quantity=int(quantity or 1)))
        request = OrderCreateRequest(cart=items or None, currency_code=currency_code)

    async with MerchantApiClient(base_url=base_url) as api:
        try:
            token = await api.get_browser_safe_client_token()
            print(f"client_token_length={len(token)}")
            order = await api.create_order(request, path=path)
            print(f"order_id={order.order_id}")
            if capture:
                result = await api.capture_order(order.order_id)
                print(json.dumps(result.raw, indent=2))
        except SdkError as exc:
            print(json.dumps(exc.to_dict(), indent=2, default=str))
            return 1
    return 0


def main() -> None:
    """Parse CLI args and run one smoke checkout."""

    parser = argparse.ArgumentParser(description="Smoke-test a merchant checkout proxy.")
    parser.add_argument("--base-url", default=settings.merchant_api_url)
    parser.add_argument("--path", default=CREATE_ORDER_SAMPLE_DATA_PATH, help="Order creation route")
    parser.add_argument("--item", dest="cart", action="append", default=[], help="sku[:quantity], repeatable")
    parser.add_argument("--currency-code", default=None)
    parser.add_argument("--capture", action="store_true", help="Capture right after creating (sandbox only)")
    args = parser.parse_args()

    configure_logging()
    provider = setup_tracing(settings.service_name)
    log_startup_config(settings.service_name, ["merchant_api_url", "http_max_retries", "tracing_enabled"])
    try:
        exit_code = asyncio.run(run(args.base_url, args.path, args.cart, args.currency_code, args.capture))
    finally:
        shutdown_tracing(provider)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
