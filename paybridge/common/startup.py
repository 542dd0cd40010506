"""Entry-point checks run before any checkout traffic."""

from urllib.parse import urlsplit

from paybridge.common.config import CommonSettings, settings
from paybridge.common.errors import ErrorCode, SdkError
from paybridge.common.logging import logger

SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")
RELAY_ORIGIN_FIELDS = ("parent_origin", "child_origin")


def _display(name: str, value) -> str:
    if value is None:
        return "<unset>"
    if any(marker in name.upper() for marker in SECRET_MARKERS):
        return "<redacted>"
    return str(value)


def validate_relay_origins(config: CommonSettings = settings) -> None:
    """Relay origins are compared verbatim, so they must be bare `scheme://host[:port]`."""

    for name in RELAY_ORIGIN_FIELDS:
        value = getattr(config, name)
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc or parts.path or parts.query or parts.fragment:
            raise SdkError(
                ErrorCode.INVALID_CONFIGURATION,
                f"{name} must look like scheme://host[:port], got {value!r}",
            )


def log_startup_config(service_name: str, fields: list[str], config: CommonSettings = settings) -> dict[str, str]:
    """Log selected settings fields, masking anything secret-looking."""

    snapshot = {"service": service_name}
    for name in fields:
        snapshot[name] = _display(name, getattr(config, name, None))
    logger.info("startup_config=%s", snapshot)
    return snapshot
