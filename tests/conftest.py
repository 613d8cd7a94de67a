import os
import sys
import time

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from report_gateway.app import create_app  # noqa: E402
from report_gateway.services.analytics import (  # noqa: E402
    DATA_API,
    UNIVERSAL_ANALYTICS_API,
    AnalyticsGateway,
)

UA_PAYLOAD = {
    "reports": [
        {
            "columnHeader": {
                "metricHeader": {
                    "metricHeaderEntries": [
                        {"name": "ga:sessions", "type": "INTEGER"},
                        {"name": "ga:users", "type": "INTEGER"},
                    ]
                }
            },
            "data": {
                "rows": [{"metrics": [{"values": ["1520", "1187"]}]}],
                "totals": [{"values": ["1520", "1187"]}],
                "rowCount": 1,
            },
        }
    ]
}

GA4_PAYLOAD = {
    "dimensionHeaders": [{"name": "date"}, {"name": "country"}],
    "metricHeaders": [
        {"name": "activeUsers", "type": "TYPE_INTEGER"},
        {"name": "screenPageViews", "type": "TYPE_INTEGER"},
    ],
    "rows": [
        {
            "dimensionValues": [{"value": "20250301"}, {"value": "Brazil"}],
            "metricValues": [{"value": "42"}, {"value": "310"}],
        }
    ],
    "rowCount": 1,
    "kind": "analyticsData#runReport",
}

_GA_ENV_KEYS = (
    "GA_CREDENTIALS",
    "GA_CREDENTIALS_PATH",
    "GA_VIEW_ID",
    "GA_PROPERTY_ID",
    "GA_TIMEOUT_SECONDS",
    "GA_CUSTOM_REPORT_START_DATE",
    "GA_CUSTOM_REPORT_END_DATE",
    "PORT",
    "CORS_ORIGINS",
)


class FakeUniversalClient:
    api = UNIVERSAL_ANALYTICS_API

    def __init__(self, payload=None, error=None, delay=0.0):
        self.payload = UA_PAYLOAD if payload is None else payload
        self.error = error
        self.delay = delay
        self.calls = []

    def batch_get(self, body):
        self.calls.append(body)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload


class FakeDataClient:
    api = DATA_API

    def __init__(self, payload=None, error=None, delay=0.0):
        self.payload = GA4_PAYLOAD if payload is None else payload
        self.error = error
        self.delay = delay
        self.calls = []

    def run_report(self, request):
        self.calls.append(request)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture(autouse=True)
def _gateway_env(monkeypatch):
    for key in _GA_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("GA_VIEW_ID", "12345")
    monkeypatch.setenv("GA_PROPERTY_ID", "987654")
    monkeypatch.setenv("OTEL_EXPORTER", "none")
    yield


@pytest.fixture
def universal_client():
    return FakeUniversalClient()


@pytest.fixture
def data_client():
    return FakeDataClient()


@pytest.fixture
def build_app(universal_client, data_client):
    def _build(universal=None, data=None):
        analytics = AnalyticsGateway(
            universal=universal or universal_client,
            data=data or data_client,
            credential_source="inline",
        )
        app = create_app(analytics=analytics)
        app.config["TESTING"] = True
        return app

    return _build


@pytest.fixture
def app(build_app):
    return build_app()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client
