"""Google Analytics API clients used by the report routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

import google_auth_httplib2
import httplib2
import requests
from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import RunReportRequest, RunReportResponse
from google.api_core.exceptions import GoogleAPIError
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from googleapiclient import discovery
from googleapiclient.errors import HttpError

from ..credentials import CredentialResolver
from ..errors import EncodingError, UpstreamError
from ..utils.config import GatewaySettings

__all__ = [
    "DATA_API",
    "UNIVERSAL_ANALYTICS_API",
    "AnalyticsGateway",
    "DataAPIClient",
    "UniversalAnalyticsClient",
    "build_analytics_gateway",
]

UNIVERSAL_ANALYTICS_API = "analyticsreporting"
DATA_API = "analyticsdata"


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class UniversalAnalyticsClient:
    """Reporting API v4 client built from the bundled discovery document.

    ``httplib2`` connections are not thread-safe, so every call executes over a
    fresh authorised ``Http`` instance carrying the configured timeout.
    """

    api = UNIVERSAL_ANALYTICS_API

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float,
        service: Any | None = None,
    ) -> None:
        self._credentials = credentials
        self._timeout = timeout
        self._service = service or discovery.build(
            UNIVERSAL_ANALYTICS_API,
            "v4",
            credentials=credentials,
            cache_discovery=False,
            static_discovery=True,
        )

    def _authorized_http(self) -> google_auth_httplib2.AuthorizedHttp:
        return google_auth_httplib2.AuthorizedHttp(
            self._credentials, http=httplib2.Http(timeout=self._timeout)
        )

    def batch_get(self, body: Mapping[str, Any]) -> Dict[str, Any]:
        """Execute ``reports.batchGet`` and return the decoded JSON document."""

        request = self._service.reports().batchGet(body=dict(body))
        try:
            return request.execute(http=self._authorized_http())
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            reason = getattr(exc, "reason", None) or _describe(exc)
            message = f"{status} {reason}" if status else reason
            raise UpstreamError(message, api=self.api, reason=f"http_{status}") from exc
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            raise UpstreamError(
                _describe(exc), api=self.api, reason=exc.__class__.__name__
            ) from exc


class DataAPIClient:
    """GA4 Data API v1beta client using the REST transport."""

    api = DATA_API

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float,
        client: Any | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client or BetaAnalyticsDataClient(
            credentials=credentials, transport="rest"
        )

    def run_report(self, request: RunReportRequest) -> Dict[str, Any]:
        """Execute ``properties.runReport`` and return the response as a dict."""

        try:
            response = self._client.run_report(request=request, timeout=self._timeout)
        except GoogleAPIError as exc:
            raise UpstreamError(
                _describe(exc), api=self.api, reason=exc.__class__.__name__
            ) from exc
        except (GoogleAuthError, requests.RequestException) as exc:
            raise UpstreamError(
                _describe(exc), api=self.api, reason=exc.__class__.__name__
            ) from exc

        try:
            return RunReportResponse.to_dict(
                response,
                use_integers_for_enums=False,
                preserving_proto_field_name=False,
                always_print_fields_with_no_presence=False,
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise EncodingError() from exc


@dataclass(frozen=True)
class AnalyticsGateway:
    """Clients shared read-only by every request."""

    universal: UniversalAnalyticsClient
    data: DataAPIClient
    credential_source: str


def build_analytics_gateway(
    settings: GatewaySettings, resolver: CredentialResolver
) -> AnalyticsGateway:
    """Resolve credentials and construct both API clients.

    Raises ``ConfigurationError`` when the credential material is missing or
    malformed.
    """

    credentials = resolver.resolve()
    return AnalyticsGateway(
        universal=UniversalAnalyticsClient(credentials, timeout=settings.timeout_seconds),
        data=DataAPIClient(credentials, timeout=settings.timeout_seconds),
        credential_source=resolver.source,
    )
