"""OpenTelemetry wiring for proxy calls and session starts.

Until `setup_tracing` runs, `get_tracer` hands out the API's no-op tracer, so
instrumented code never needs to know whether tracing is on.
"""

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from paybridge.common.config import settings


def setup_tracing(service_name: str, endpoint: str | None = None) -> TracerProvider | None:
    """Register an OTLP/HTTP tracer provider when `tracing_enabled` is set."""

    if not settings.tracing_enabled:
        return None
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    exporter = OTLPSpanExporter(endpoint=endpoint or settings.otel_exporter_otlp_endpoint)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return provider


def shutdown_tracing(provider: TracerProvider | None) -> None:
    # Flushes the batch processor; short-lived CLIs exit before the export timer fires.
    if provider is not None:
        provider.shutdown()


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def current_trace_id() -> str:
    """Hex trace id of the active span, or "" outside any recording span."""

    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return ""
    return format(span_context.trace_id, "032x")
