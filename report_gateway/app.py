"""Report gateway application factory."""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .credentials import select_credential_resolver
from .errors import GatewayError, UpstreamError
from .middleware.logging import setup_request_logging
from .observability import (
    configure_metrics,
    configure_structured_logging,
    configure_tracing,
)
from .routes import register_report_routes
from .services.analytics import AnalyticsGateway, build_analytics_gateway
from .utils.config import (
    EnvironmentSettings,
    GatewaySettings,
    load_environment_settings,
    log_configuration_snapshot,
)
from .utils.responses import error_response


def _split_env_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


HealthResult = Tuple[str, Dict[str, Any]]


def _check_credentials(app: Flask) -> HealthResult:
    analytics = app.extensions.get("analytics_gateway")
    if analytics is None:
        return "down", {"message": "Analytics clients not initialised"}
    return "up", {"source": analytics.credential_source}


def _check_view_report(app: Flask) -> HealthResult:
    settings: GatewaySettings = app.extensions["gateway_settings"]
    if not settings.view_id:
        return "degraded", {"message": "GA_VIEW_ID not configured"}
    return "up", {"message": "GA_VIEW_ID configured"}


def _check_custom_report(app: Flask) -> HealthResult:
    settings: GatewaySettings = app.extensions["gateway_settings"]
    if not settings.property_id:
        return "degraded", {"message": "GA_PROPERTY_ID not configured"}
    return "up", {"message": "GA_PROPERTY_ID configured"}


def _register_health_endpoints(app: Flask) -> None:
    # Configuration checks only; the Google APIs are not called from here.
    checks: Dict[str, Callable[[Flask], HealthResult]] = {
        "credentials": _check_credentials,
        "report": _check_view_report,
        "customReport": _check_custom_report,
    }

    @app.route("/health")
    def health():
        dependencies: Dict[str, Dict[str, Any]] = {}
        overall = "ok"
        for name, check in checks.items():
            status, details = check(app)
            dependencies[name] = {"status": status, "details": details}
            if status != "up":
                overall = "degraded"
        return jsonify(
            {"service": "report-gateway", "status": overall, "dependencies": dependencies}
        )


def _configure_logging(app: Flask) -> None:
    """Resolve the configured log level name into a ``logging`` level."""

    level = str(app.config.get("LOG_LEVEL_NAME", "INFO")).upper()
    logging_level = logging.getLevelName(level)
    if not isinstance(logging_level, int):
        logging_level = logging.INFO
    app.config["LOG_LEVEL"] = logging_level


def _cors_configuration(app: Flask) -> dict[str, Any]:
    """Build the CORS configuration for the application."""

    origins = list(app.config.get("CORS_ORIGINS", ()))
    cors_origins: Any = origins if origins else "*"
    return {
        "origins": cors_origins,
        "methods": ["GET", "OPTIONS"],
        "allow_headers": ["Content-Type", "X-Request-ID"],
        "expose_headers": ["X-Request-ID"],
        "supports_credentials": False,
    }


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(GatewayError)
    def gateway_error_handler(error: GatewayError):
        """Render configuration, upstream and encoding failures."""

        if isinstance(error, UpstreamError):
            app.logger.warning(
                "Error fetching report from %s: %s",
                error.api,
                error.message,
                extra={"upstream_api": error.api, "reason": error.reason},
            )
        else:
            app.logger.error("%s: %s", error.__class__.__name__, error.message)
        return error_response(error.status_code, error.describe())

    @app.errorhandler(HTTPException)
    def http_error_handler(error: HTTPException):
        """Return JSON envelopes for Werkzeug HTTP exceptions."""

        status_code = error.code or 500
        message = error.name or "Error"
        return error_response(status_code, message)

    @app.errorhandler(Exception)
    def generic_error_handler(error: Exception):  # noqa: D401 - brief message sufficient
        """Return a JSON envelope for unexpected errors."""

        app.logger.exception("Unhandled exception", exc_info=error)
        return error_response(500, "Internal Server Error")


def create_app(*, analytics: AnalyticsGateway | None = None) -> Flask:
    """Create and configure the Flask application.

    Credentials are resolved here, once, so a missing or malformed credential
    source raises ``ConfigurationError`` at startup instead of on the first
    request. ``analytics`` replaces the Google clients entirely, which is how
    tests and embedding hosts inject their own.
    """

    project_root = Path(__file__).resolve().parent.parent
    environment: EnvironmentSettings = load_environment_settings(project_root=project_root)
    settings = GatewaySettings.from_environment(environment)
    app = Flask(__name__)

    app.config["APP_ENV"] = environment.name
    app.config["CONFIG_ENV_FILES"] = environment.loaded_files
    app.config["GA_VIEW_ID"] = settings.view_id or ""
    app.config["GA_PROPERTY_ID"] = settings.property_id or ""
    app.config["GA_CREDENTIALS"] = settings.credentials_json or ""
    app.config["GA_CREDENTIALS_PATH"] = settings.credentials_path or ""
    app.config["GA_TIMEOUT_SECONDS"] = settings.timeout_seconds
    app.config["GA_CUSTOM_REPORT_START_DATE"] = settings.custom_report_start_date
    app.config["GA_CUSTOM_REPORT_END_DATE"] = settings.custom_report_end_date
    app.config["APP_PORT"] = settings.port
    app.config["LOG_LEVEL_NAME"] = (environment.get("LOG_LEVEL", "INFO") or "INFO").upper()
    app.config["LOGGER_NAME"] = environment.get("LOGGER_NAME", "report_gateway") or "report_gateway"
    app.config["CORS_ORIGINS"] = tuple(_split_env_list(environment.get("CORS_ORIGINS", "") or ""))
    app.config["OTEL_EXPORTER"] = environment.get("OTEL_EXPORTER", "otlp") or "otlp"
    app.config["OTEL_EXPORTER_OTLP_ENDPOINT"] = environment.get(
        "OTEL_EXPORTER_OTLP_ENDPOINT"
    ) or environment.get("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
    app.config["OTEL_EXPORTER_OTLP_HEADERS"] = environment.get("OTEL_EXPORTER_OTLP_HEADERS")
    app.config["OTEL_SERVICE_NAME"] = environment.get("OTEL_SERVICE_NAME", "report-gateway")

    _configure_logging(app)
    configure_structured_logging(app)
    configure_metrics(app)
    setup_request_logging(app)

    CORS(app, **_cors_configuration(app))

    if analytics is None:
        resolver = select_credential_resolver(settings)
        app.logger.info(
            "Resolving Google credentials", extra={"credential_source": resolver.source}
        )
        analytics = build_analytics_gateway(settings, resolver)
    app.extensions["gateway_settings"] = settings
    app.extensions["analytics_gateway"] = analytics
    app.config["GA_CREDENTIALS_SOURCE"] = analytics.credential_source

    log_configuration_snapshot(
        logger=app.logger,
        settings=environment,
        config=app.config,
        keys_of_interest=[
            "APP_ENV",
            "CONFIG_ENV_FILES",
            "GA_CREDENTIALS",
            "GA_CREDENTIALS_PATH",
            "GA_CREDENTIALS_SOURCE",
            "GA_VIEW_ID",
            "GA_PROPERTY_ID",
            "GA_TIMEOUT_SECONDS",
            "GA_CUSTOM_REPORT_START_DATE",
            "GA_CUSTOM_REPORT_END_DATE",
            "APP_PORT",
            "CORS_ORIGINS",
        ],
    )
    for name in settings.missing_identifiers():
        app.logger.warning("%s is not set; the matching report route will fail", name)

    register_report_routes(app)
    _register_health_endpoints(app)
    configure_tracing(app)
    _register_error_handlers(app)

    return app
