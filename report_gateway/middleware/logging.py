"""Request logging middleware for the report gateway."""

import json
import time
import uuid
from typing import Any, Dict

from flask import Flask, Response, g, request
from opentelemetry import trace


def _serialise_log(record: Dict[str, Any]) -> str:
    """Serialise a dictionary as a JSON string for structured logging."""

    return json.dumps(record, sort_keys=True, separators=(",", ":"))


def _endpoint_label() -> str:
    # Unmatched paths share one label to keep metric cardinality bounded.
    rule = getattr(request.url_rule, "rule", None)
    return rule or "<unmatched>"


def setup_request_logging(app: Flask) -> None:
    """Attach request logging hooks to the provided Flask application."""

    @app.before_request
    def _start_timer() -> None:
        g.request_started_at = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            g.client_ip = forwarded_for.split(",")[0].strip()
        else:
            g.client_ip = request.remote_addr or ""

    @app.after_request
    def _log_request(response: Response) -> Response:
        start = getattr(g, "request_started_at", None)
        duration_ms = None
        if start is not None:
            duration_ms = (time.perf_counter() - start) * 1000

        log_record: Dict[str, Any] = {
            "method": request.method,
            "path": request.full_path.rstrip("?") or request.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 3) if duration_ms is not None else None,
            "ip": getattr(g, "client_ip", request.remote_addr),
            "request_id": getattr(g, "request_id", None),
            "route": _endpoint_label(),
            "user_agent": request.headers.get("User-Agent"),
        }

        context = trace.get_current_span().get_span_context()
        if context and context.trace_id:
            log_record["trace_id"] = format(context.trace_id, "032x")
        if context and context.span_id:
            log_record["span_id"] = format(context.span_id, "016x")

        app.logger.info(_serialise_log(log_record))

        metrics = app.extensions.get("metrics")
        if metrics:
            metrics.observe_http_request(
                method=request.method,
                endpoint=_endpoint_label(),
                status=response.status_code,
                duration_seconds=(duration_ms / 1000.0) if duration_ms is not None else None,
            )

        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)

        return response
