"""Exponential-backoff retry for transient proxy failures."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from paybridge.common.config import settings
from paybridge.common.errors import ErrorCode, SdkError, parse_error
from paybridge.common.logging import logger
from paybridge.common.metrics import retries_total

T = TypeVar("T")

NON_RETRYABLE_CODES = {
    ErrorCode.INVALID_CLIENT_TOKEN.value,
    ErrorCode.INVALID_CONFIGURATION.value,
    ErrorCode.PAYMENT_CANCELLED.value,
    ErrorCode.BROWSER_NOT_SUPPORTED.value,
    ErrorCode.DEVICE_NOT_SUPPORTED.value,
}
RETRYABLE_CODES = {
    ErrorCode.NETWORK_ERROR.value,
    ErrorCode.TIMEOUT_ERROR.value,
    ErrorCode.SERVER_ERROR.value,
}


def should_retry(error: SdkError) -> bool:
    if error.code in NON_RETRYABLE_CODES:
        return False
    return error.code in RETRYABLE_CODES


async def retry(
    fn: Callable[[], Awaitable[T]],
    *,
    dependency: str = "merchant-api",
    max_attempts: int | None = None,
    initial_delay: float | None = None,
    max_delay: float | None = None,
    backoff_multiplier: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `fn` until it succeeds, fails non-retryably, or attempts run out.

    Failures are normalized with `parse_error`; the last one is raised.
    """

    attempts = max_attempts if max_attempts is not None else settings.http_max_retries
    delay = initial_delay if initial_delay is not None else settings.http_backoff_seconds
    ceiling = max_delay if max_delay is not None else settings.http_max_backoff_seconds
    if attempts < 1:
        raise SdkError(ErrorCode.INVALID_CONFIGURATION, "max_attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            error = parse_error(exc)
            if attempt >= attempts or not should_retry(error):
                if error is exc:
                    raise
                raise error from exc
            wait = min(delay, ceiling)
            retries_total.labels(service=settings.service_name, dependency=dependency).inc()
            logger.warning(
                "retrying dependency=%s attempt=%s code=%s backoff_s=%s",
                dependency,
                attempt,
                error.code,
                wait,
            )
            await sleep(wait)
            delay *= backoff_multiplier
    raise SdkError(ErrorCode.UNKNOWN_ERROR, "retry exhausted")
