"""Error taxonomy shared by the API client, SDK wrappers and flows."""

import time
from enum import Enum
from typing import Any

import httpx


class ErrorCode(str, Enum):
    # Initialization
    SDK_LOAD_FAILED = "SDK_LOAD_FAILED"
    SDK_NOT_INITIALIZED = "SDK_NOT_INITIALIZED"
    INVALID_CLIENT_TOKEN = "INVALID_CLIENT_TOKEN"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    COMPONENT_NOT_LOADED = "COMPONENT_NOT_LOADED"

    # Payment
    PAYMENT_CANCELLED = "PAYMENT_CANCELLED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_NOT_APPROVED = "PAYMENT_NOT_APPROVED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_ALREADY_CAPTURED = "ORDER_ALREADY_CAPTURED"

    # Network
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"

    # Validation
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"

    # Session
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_ALREADY_ACTIVE = "SESSION_ALREADY_ACTIVE"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Browser/device
    BROWSER_NOT_SUPPORTED = "BROWSER_NOT_SUPPORTED"
    POPUP_BLOCKED = "POPUP_BLOCKED"
    DEVICE_NOT_SUPPORTED = "DEVICE_NOT_SUPPORTED"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class SdkError(Exception):
    """Checkout failure carrying a machine-readable `code`.

    `code` is kept as a plain string so vendor codes such as
    `ERR_DEV_UNABLE_TO_OPEN_POPUP` round-trip untouched.
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        *,
        debug_id: str | None = None,
        details: Any = None,
        order_id: str | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.debug_id = debug_id
        self.details = details
        self.order_id = order_id
        self.original_error = original_error
        self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "debug_id": self.debug_id,
            "details": self.details,
            "order_id": self.order_id,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ApiError(SdkError):
    """Non-2xx (or malformed) response from the merchant proxy."""

    def __init__(self, message: str, status_code: int, result: dict[str, Any] | None = None) -> None:
        code = ErrorCode.SERVER_ERROR if status_code >= 500 else ErrorCode.PAYMENT_FAILED
        result = result or {}
        super().__init__(code, message, debug_id=result.get("debug_id"), details=result)
        self.status_code = status_code
        self.result = result


def parse_error(exc: BaseException) -> SdkError:
    """Normalize any exception raised around an SDK or proxy call to `SdkError`."""

    if isinstance(exc, SdkError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return SdkError(ErrorCode.TIMEOUT_ERROR, "request timed out", original_error=exc)
    if isinstance(exc, httpx.TransportError):
        return SdkError(ErrorCode.NETWORK_ERROR, f"network failure: {exc}", original_error=exc)
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return SdkError(code, str(exc) or code, original_error=exc)
    return SdkError(ErrorCode.UNKNOWN_ERROR, str(exc) or type(exc).__name__, original_error=exc)
