import json
import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from report_gateway.errors import UpstreamError
from report_gateway.services.analytics import DATA_API, UNIVERSAL_ANALYTICS_API

from conftest import GA4_PAYLOAD, UA_PAYLOAD, FakeDataClient, FakeUniversalClient


class _CapturingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_report_returns_upstream_json(client, universal_client):
    response = client.get("/report")

    assert response.status_code == 200
    assert response.mimetype == "application/json"
    assert json.loads(response.data) == UA_PAYLOAD

    body = universal_client.calls[-1]
    report_request = body["reportRequests"][0]
    assert report_request["viewId"] == "12345"
    assert report_request["dateRanges"] == [{"startDate": "7daysAgo", "endDate": "today"}]
    assert [m["expression"] for m in report_request["metrics"]] == ["ga:sessions", "ga:users"]


def test_custom_report_returns_upstream_json(client, data_client):
    response = client.get("/customReport")

    assert response.status_code == 200
    assert response.mimetype == "application/json"
    assert json.loads(response.data) == GA4_PAYLOAD

    request = data_client.calls[-1]
    assert request.property == "properties/987654"
    assert [d.name for d in request.dimensions] == ["date", "country"]
    assert [m.name for m in request.metrics] == ["activeUsers", "screenPageViews"]
    assert request.date_ranges[0].start_date == "2025-03-01"
    assert request.date_ranges[0].end_date == "2025-04-01"


def test_custom_report_uses_configured_date_range(monkeypatch, build_app, data_client):
    monkeypatch.setenv("GA_CUSTOM_REPORT_START_DATE", "2025-06-01")
    monkeypatch.setenv("GA_CUSTOM_REPORT_END_DATE", "2025-06-30")
    app = build_app()

    response = app.test_client().get("/customReport")

    assert response.status_code == 200
    date_range = data_client.calls[-1].date_ranges[0]
    assert (date_range.start_date, date_range.end_date) == ("2025-06-01", "2025-06-30")


def test_report_without_view_id_fails_and_keeps_serving(monkeypatch, build_app, universal_client):
    monkeypatch.delenv("GA_VIEW_ID")
    app = build_app()
    client = app.test_client()

    response = client.get("/report")
    assert response.status_code == 500
    assert response.json == {
        "error": {"code": 500, "message": "GA_VIEW_ID environment variable is required"}
    }
    assert universal_client.calls == []

    assert client.get("/customReport").status_code == 200
    assert client.get("/report").status_code == 500


def test_custom_report_without_property_id_fails_and_keeps_serving(monkeypatch, build_app):
    monkeypatch.setenv("GA_PROPERTY_ID", "   ")
    app = build_app()
    client = app.test_client()

    response = client.get("/customReport")
    assert response.status_code in {400, 500}
    assert "GA_PROPERTY_ID" in response.json["error"]["message"]

    assert client.get("/report").status_code == 200


@pytest.mark.parametrize("path", ["/", "/reports", "/customreport", "/report/extra", "/api/report"])
def test_unmapped_paths_return_404(client, path):
    response = client.get(path)
    assert response.status_code == 404
    assert response.json == {"error": {"code": 404, "message": "Not Found"}}


def test_report_routes_reject_other_methods(client):
    assert client.post("/report").status_code == 405
    assert client.delete("/customReport").status_code == 405


def test_custom_report_upstream_error_surfaces_message(build_app):
    error = UpstreamError(
        "403 User does not have sufficient permissions for this property.",
        api=DATA_API,
        reason="PermissionDenied",
    )
    app = build_app(data=FakeDataClient(error=error))

    response = app.test_client().get("/customReport")

    assert response.status_code == 500
    payload = json.loads(response.data)
    assert payload == {
        "error": {
            "code": 500,
            "message": "Failed to fetch report: "
            "403 User does not have sufficient permissions for this property.",
        }
    }


def test_report_upstream_error_surfaces_message(build_app):
    error = UpstreamError("timed out", api=UNIVERSAL_ANALYTICS_API, reason="TimeoutError")
    app = build_app(universal=FakeUniversalClient(error=error))
    client = app.test_client()

    response = client.get("/report")

    assert response.status_code == 500
    assert "timed out" in response.json["error"]["message"]
    assert client.get("/customReport").status_code == 200


@pytest.mark.parametrize("payload", [{"value": float("nan")}, {"value": object()}])
def test_unencodable_report_returns_encoding_error(build_app, payload):
    app = build_app(data=FakeDataClient(payload=payload))

    response = app.test_client().get("/customReport")

    assert response.status_code == 500
    assert response.json == {"error": {"code": 500, "message": "Failed to encode response"}}


def test_report_body_is_exact_upstream_document(build_app):
    payload = {"reports": [], "queryCost": 3, "nested": {"empty": {}, "list": [None, True]}}
    app = build_app(universal=FakeUniversalClient(payload=payload))

    response = app.test_client().get("/report")

    assert json.loads(response.data) == payload


def test_concurrent_requests_do_not_interfere(build_app):
    universal = FakeUniversalClient(payload={"source": "ua"}, delay=0.01)
    data = FakeDataClient(payload={"source": "ga4"}, delay=0.01)
    app = build_app(universal=universal, data=data)

    def fetch(path):
        response = app.test_client().get(path)
        return path, response.status_code, response.json

    paths = ["/report", "/customReport"] * 10
    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(fetch, paths))

    expected = {"/report": {"source": "ua"}, "/customReport": {"source": "ga4"}}
    for path, status, payload in results:
        assert status == 200
        assert payload == expected[path]
    assert len(universal.calls) == 10
    assert len(data.calls) == 10


def test_health_reports_configuration(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json["status"] == "ok"
    assert response.json["dependencies"]["credentials"] == {
        "status": "up",
        "details": {"source": "inline"},
    }
    assert response.json["dependencies"]["report"]["details"] == {"message": "GA_VIEW_ID configured"}
    assert "12345" not in response.get_data(as_text=True)
    assert "987654" not in response.get_data(as_text=True)


def test_health_degraded_without_property_id(monkeypatch, build_app):
    monkeypatch.delenv("GA_PROPERTY_ID")
    app = build_app()

    response = app.test_client().get("/health")

    assert response.status_code == 200
    assert response.json["status"] == "degraded"
    assert response.json["dependencies"]["customReport"]["status"] == "degraded"


def test_request_id_is_echoed(client):
    response = client.get("/report", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"

    generated = client.get("/report")
    assert generated.headers["X-Request-ID"]


def test_request_logging_includes_metadata(client):
    handler = _CapturingHandler()
    handler.setLevel(logging.INFO)
    client.application.logger.addHandler(handler)
    try:
        response = client.get(
            "/report",
            headers={"X-Forwarded-For": "203.0.113.20"},
            environ_base={"REMOTE_ADDR": "198.51.100.4"},
        )
    finally:
        client.application.logger.removeHandler(handler)

    assert response.status_code == 200
    messages = [record.getMessage() for record in handler.records]
    assert "Fetching report for view ID: 12345" in messages
    payload = json.loads(messages[-1])
    assert payload["method"] == "GET"
    assert payload["path"] == "/report"
    assert payload["route"] == "/report"
    assert payload["status"] == 200
    assert payload["ip"] == "203.0.113.20"
    assert payload["request_id"] == response.headers["X-Request-ID"]


def test_cors_allows_any_origin_when_env_absent(client):
    origin = "https://dashboard.example.com"
    response = client.get("/report", headers={"Origin": origin})

    assert response.headers.get("Access-Control-Allow-Origin") in {origin, "*"}


def test_cors_restricts_to_configured_origins(monkeypatch, build_app):
    monkeypatch.setenv("CORS_ORIGINS", "https://allowed.example.com")
    app = build_app()
    client = app.test_client()

    allowed = client.get("/report", headers={"Origin": "https://allowed.example.com"})
    denied = client.get("/report", headers={"Origin": "https://other.example.com"})

    assert allowed.headers.get("Access-Control-Allow-Origin") == "https://allowed.example.com"
    assert "Access-Control-Allow-Origin" not in denied.headers
