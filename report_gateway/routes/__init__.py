"""Route registration helpers for the report gateway."""

from __future__ import annotations

from flask import Flask

from .reports import reports_bp

__all__ = ["register_report_routes"]


def register_report_routes(app: Flask) -> None:
    """Register the report blueprint on ``app``."""

    app.register_blueprint(reports_bp)
