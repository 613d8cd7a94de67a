"""Error taxonomy for the report gateway."""

from __future__ import annotations


class GatewayError(Exception):
    """Base error rendered as a JSON error envelope."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def describe(self) -> str:
        """Return the message exposed to API clients."""

        return self.message


class ConfigurationError(GatewayError):
    """Raised when a required setting is absent, empty or malformed."""


class UpstreamError(GatewayError):
    """Raised when a Google Analytics API call fails."""

    def __init__(self, message: str, *, api: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.api = api
        self.reason = reason or "error"

    def describe(self) -> str:
        return f"Failed to fetch report: {self.message}"


class EncodingError(GatewayError):
    """Raised when a report response cannot be serialised as JSON."""

    def __init__(self, message: str = "Failed to encode response") -> None:
        super().__init__(message)
