"""Fixed report definitions served by the gateway."""

from __future__ import annotations

from typing import Any, Dict

from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Metric,
    RunReportRequest,
)

VIEW_REPORT_METRICS = ("ga:sessions", "ga:users")
VIEW_REPORT_DATE_RANGE = ("7daysAgo", "today")

CUSTOM_REPORT_DIMENSIONS = ("date", "country")
CUSTOM_REPORT_METRICS = ("activeUsers", "screenPageViews")
CUSTOM_REPORT_DATE_RANGE = ("2025-03-01", "2025-04-01")


def property_resource(property_id: str) -> str:
    """Return the ``properties/<id>`` resource name for a GA4 property."""

    property_id = property_id.strip()
    if property_id.startswith("properties/"):
        return property_id
    return f"properties/{property_id}"


def build_view_report(view_id: str) -> Dict[str, Any]:
    """Build the Reporting API v4 ``batchGet`` body for the trailing week."""

    start_date, end_date = VIEW_REPORT_DATE_RANGE
    return {
        "reportRequests": [
            {
                "viewId": view_id,
                "dateRanges": [{"startDate": start_date, "endDate": end_date}],
                "metrics": [{"expression": expression} for expression in VIEW_REPORT_METRICS],
            }
        ]
    }


def build_custom_report(
    property_id: str,
    *,
    start_date: str = CUSTOM_REPORT_DATE_RANGE[0],
    end_date: str = CUSTOM_REPORT_DATE_RANGE[1],
) -> RunReportRequest:
    return RunReportRequest(
        property=property_resource(property_id),
        date_ranges=[DateRange(start_date=start_date, end_date=end_date)],
        dimensions=[Dimension(name=name) for name in CUSTOM_REPORT_DIMENSIONS],
        metrics=[Metric(name=name) for name in CUSTOM_REPORT_METRICS],
    )
