"""Report routes for the gateway."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict

from flask import Blueprint, Response, current_app
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..errors import ConfigurationError, GatewayError
from ..reports import build_custom_report, build_view_report, property_resource
from ..services.analytics import DATA_API, UNIVERSAL_ANALYTICS_API, AnalyticsGateway
from ..utils.config import GatewaySettings
from ..utils.responses import report_response

reports_bp = Blueprint("reports", __name__)
tracer = trace.get_tracer(__name__)


def _settings() -> GatewaySettings:
    settings = current_app.extensions.get("gateway_settings")
    if settings is None:
        raise ConfigurationError("Gateway settings are not initialised")
    return settings


def _analytics() -> AnalyticsGateway:
    gateway = current_app.extensions.get("analytics_gateway")
    if gateway is None:
        raise ConfigurationError("Analytics clients are not initialised")
    return gateway


def _call_upstream(api: str, call: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Run ``call`` inside an upstream span and record its latency."""

    metrics = current_app.extensions.get("metrics")
    span_name = "upstream.batch_get" if api == UNIVERSAL_ANALYTICS_API else "upstream.run_report"
    with tracer.start_as_current_span(span_name, attributes={"upstream.api": api}) as span:
        start = time.perf_counter()
        try:
            result = call()
        except GatewayError as exc:
            duration = time.perf_counter() - start
            reason = getattr(exc, "reason", None) or exc.__class__.__name__
            span.record_exception(exc)
            span.set_status(Status(status_code=StatusCode.ERROR, description=reason))
            if metrics:
                metrics.record_upstream_failure(api=api, reason=reason)
                metrics.observe_upstream_latency(
                    api=api, outcome="error", duration_seconds=duration
                )
            raise

        duration = time.perf_counter() - start
        span.set_attribute("upstream.duration_ms", duration * 1000.0)
        if metrics:
            metrics.observe_upstream_latency(api=api, outcome="ok", duration_seconds=duration)
        return result


@reports_bp.get("/report")
def view_report() -> Response:
    """Return sessions and users for the configured view over the last week."""

    settings = _settings()
    if not settings.view_id:
        raise ConfigurationError("GA_VIEW_ID environment variable is required")
    analytics = _analytics()

    with tracer.start_as_current_span("report.view", attributes={"ga.view_id": settings.view_id}):
        current_app.logger.info("Fetching report for view ID: %s", settings.view_id)
        body = build_view_report(settings.view_id)
        payload = _call_upstream(
            UNIVERSAL_ANALYTICS_API, lambda: analytics.universal.batch_get(body)
        )
        return report_response(payload)


@reports_bp.get("/customReport")
def custom_report() -> Response:
    """Return GA4 active users and page views by date and country."""

    settings = _settings()
    if not settings.property_id:
        raise ConfigurationError("GA_PROPERTY_ID environment variable is required")
    analytics = _analytics()

    resource = property_resource(settings.property_id)
    with tracer.start_as_current_span("report.custom", attributes={"ga.property": resource}):
        request = build_custom_report(
            settings.property_id,
            start_date=settings.custom_report_start_date,
            end_date=settings.custom_report_end_date,
        )
        payload = _call_upstream(DATA_API, lambda: analytics.data.run_report(request))
        response = report_response(payload)
        current_app.logger.info("Fetched GA4 report for %s", resource)
        return response
