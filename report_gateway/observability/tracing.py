"""OpenTelemetry tracing configuration."""

from __future__ import annotations

from typing import Dict, Iterable

from flask import Flask
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (  # type: ignore[import-not-found]
    OTLPSpanExporter,
)
from opentelemetry.instrumentation.flask import FlaskInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)


_provider: TracerProvider | None = None
_requests_instrumented = False
_configured_exporters: set[tuple] = set()


def _parse_headers(raw: str | Iterable[str] | None) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if raw is None:
        return headers
    if isinstance(raw, str):
        items = [item.strip() for item in raw.split(",") if item.strip()]
    else:
        items = list(raw)
    for item in items:
        key, sep, value = item.partition("=")
        if not sep:
            continue
        headers[key.strip()] = value.strip()
    return headers


def _build_exporter(app: Flask) -> SpanExporter | None:
    if exporter := app.config.get("OTEL_SPAN_EXPORTER"):
        return exporter

    exporter_name = str(app.config.get("OTEL_EXPORTER", "otlp")).lower()
    if exporter_name == "none":
        return None
    if exporter_name == "console":
        return ConsoleSpanExporter()

    endpoint = app.config.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    headers = _parse_headers(app.config.get("OTEL_EXPORTER_OTLP_HEADERS"))
    if endpoint or headers:
        return OTLPSpanExporter(endpoint=endpoint or None, headers=headers or None)
    # Without a collector endpoint spans go to stdout rather than a dead socket.
    return ConsoleSpanExporter()


def _exporter_signature(exporter: SpanExporter) -> tuple:
    return (
        exporter.__class__,
        getattr(exporter, "_endpoint", None),
    )


def configure_tracing(app: Flask) -> TracerProvider:
    """Configure OpenTelemetry tracing for the Flask application."""

    global _provider, _requests_instrumented

    if app.extensions.get("tracing_configured"):
        return trace.get_tracer_provider()  # type: ignore[return-value]

    service_name = app.config.get("OTEL_SERVICE_NAME") or "report-gateway"
    resource = Resource.create({"service.name": service_name})

    if _provider is None:
        existing_provider = trace.get_tracer_provider()
        if isinstance(existing_provider, TracerProvider):
            provider = existing_provider
        else:
            provider = TracerProvider(resource=resource)
            trace.set_tracer_provider(provider)
        _provider = provider
    else:
        provider = _provider

    exporter = _build_exporter(app)
    if exporter is not None:
        use_simple = bool(app.config.get("OTEL_USE_SIMPLE_PROCESSOR")) or isinstance(
            exporter, ConsoleSpanExporter
        )
        processor_class = SimpleSpanProcessor if use_simple else BatchSpanProcessor
        signature = _exporter_signature(exporter)
        force_attach = bool(app.config.get("OTEL_SPAN_EXPORTER"))
        if force_attach or signature not in _configured_exporters:
            provider.add_span_processor(processor_class(exporter))
            if not force_attach:
                _configured_exporters.add(signature)

    # The GA4 Data API client talks REST through ``requests``.
    if not _requests_instrumented:
        RequestsInstrumentor().instrument()
        _requests_instrumented = True

    if not app.extensions.get("otel_flask_instrumented"):
        FlaskInstrumentor().instrument_app(app, excluded_urls="health,metrics")
        app.extensions["otel_flask_instrumented"] = True
    app.extensions["tracing_configured"] = True
    app.extensions["tracer_provider"] = provider
    return provider
