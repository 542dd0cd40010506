"""Prometheus metric definitions shared across checkout modules."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


api_requests_total = Counter(
    "api_requests_total",
    "Total merchant proxy requests",
    ["service", "endpoint", "method", "status_code"],
)
api_request_duration_seconds = Histogram(
    "api_request_duration_seconds",
    "Merchant proxy request duration seconds",
    ["service", "endpoint", "method"],
)
presentation_attempts_total = Counter(
    "presentation_attempts_total",
    "Payment session start attempts by presentation mode and outcome",
    ["service", "presentation_mode", "outcome"],
)
presentation_fallbacks_total = Counter(
    "presentation_fallbacks_total",
    "Recoverable presentation mode failures that moved to the next mode",
    ["service", "from_mode", "error_code"],
)
relay_messages_total = Counter(
    "relay_messages_total",
    "Frame messages handled by the relay",
    ["service", "side", "event_name", "outcome"],
)
payment_outcomes_total = Counter(
    "payment_outcomes_total",
    "Terminal payment session outcomes",
    ["service", "payment_method", "outcome"],
)
retries_total = Counter("retries_total", "Retry count", ["service", "dependency"])


def metrics_payload() -> tuple[bytes, str]:
    """Return all registered Prometheus metrics in text format with content type."""

    return generate_latest(), CONTENT_TYPE_LATEST
