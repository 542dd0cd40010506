"""Central environment-driven settings for checkout integrations.

Each process loads this once at import time. Behavior is controlled by
environment variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "paybridge"
    log_level: str = "INFO"
    merchant_api_url: str = "http://localhost:8080"
    http_timeout_seconds: float = 10.0
    http_max_retries: int = 3
    http_backoff_seconds: float = 1.0
    http_max_backoff_seconds: float = 30.0
    parent_origin: str = "http://localhost:3001"
    child_origin: str = "http://localhost:3000"
    currency_code: str = "USD"
    sdk_components: list[str] = ["paypal-payments"]
    page_type: str = "checkout"
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
