"""Utilities for building JSON API responses."""

import json
from typing import Any, Dict, Optional

from flask import current_app, jsonify

from ..errors import EncodingError


def error_response(status_code: int, message: str, details: Optional[Dict[str, Any]] = None):
    """Return a JSON error envelope with the provided status code and message."""

    payload: Dict[str, Any] = {"error": {"code": status_code, "message": message}}
    if details:
        payload["error"]["details"] = details
    response = jsonify(payload)
    response.status_code = status_code
    return response


def report_response(payload: Any, status_code: int = 200):
    """Serialise an upstream report verbatim.

    The whole document is encoded before the response object exists, so an
    encoding failure never leaves a partial body on the wire.
    """

    try:
        body = json.dumps(
            payload, ensure_ascii=False, allow_nan=False, separators=(",", ":")
        )
    except (TypeError, ValueError) as exc:
        raise EncodingError() from exc
    return current_app.response_class(body, status=status_code, mimetype="application/json")
