"""Service-account credential resolution for the Google Analytics clients.

One resolver is selected at startup from the configured credential source.
Precedence is deterministic: inline JSON (``GA_CREDENTIALS``) wins over a file
path (``GA_CREDENTIALS_PATH``), which wins over application default
credentials.
"""

from __future__ import annotations

import json
import os
from typing import Sequence

import google.auth
from google.auth.credentials import Credentials
from google.auth.exceptions import DefaultCredentialsError
from google.oauth2 import service_account

from .errors import ConfigurationError
from .utils.config import GatewaySettings

__all__ = [
    "ANALYTICS_READONLY_SCOPE",
    "CredentialResolver",
    "DefaultCredentialResolver",
    "FileCredentialResolver",
    "InlineJSONCredentialResolver",
    "select_credential_resolver",
]

ANALYTICS_READONLY_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"
DEFAULT_SCOPES: tuple[str, ...] = (ANALYTICS_READONLY_SCOPE,)


class CredentialResolver:
    """Interface for credential sources."""

    source = "unknown"

    def __init__(self, *, scopes: Sequence[str] = DEFAULT_SCOPES) -> None:
        self.scopes = tuple(scopes)

    def resolve(self) -> Credentials:  # pragma: no cover - documentation
        raise NotImplementedError


class InlineJSONCredentialResolver(CredentialResolver):
    """Build credentials from service-account JSON held in the environment."""

    source = "inline"

    def __init__(self, payload: str, *, scopes: Sequence[str] = DEFAULT_SCOPES) -> None:
        super().__init__(scopes=scopes)
        self._payload = payload

    def resolve(self) -> Credentials:
        try:
            info = json.loads(self._payload)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"GA_CREDENTIALS is not valid JSON: {exc}") from exc
        if not isinstance(info, dict):
            raise ConfigurationError("GA_CREDENTIALS must contain a JSON object")
        try:
            return service_account.Credentials.from_service_account_info(
                info, scopes=list(self.scopes)
            )
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(
                f"GA_CREDENTIALS is not a valid service account key: {exc}"
            ) from exc


class FileCredentialResolver(CredentialResolver):
    """Build credentials from a service-account JSON file."""

    source = "file"

    def __init__(self, path: str, *, scopes: Sequence[str] = DEFAULT_SCOPES) -> None:
        super().__init__(scopes=scopes)
        self.path = path

    def resolve(self) -> Credentials:
        if not os.path.isfile(self.path):
            raise ConfigurationError(f"Service account credentials file not found: {self.path}")
        try:
            return service_account.Credentials.from_service_account_file(
                self.path, scopes=list(self.scopes)
            )
        except (KeyError, ValueError, OSError) as exc:
            raise ConfigurationError(
                f"Unable to load service account credentials from {self.path}: {exc}"
            ) from exc


class DefaultCredentialResolver(CredentialResolver):
    """Use application default credentials from the hosting environment."""

    source = "default"

    def resolve(self) -> Credentials:
        try:
            credentials, _project = google.auth.default(scopes=list(self.scopes))
        except DefaultCredentialsError as exc:
            raise ConfigurationError(
                "No Google credentials configured: set GA_CREDENTIALS or GA_CREDENTIALS_PATH"
                f" ({exc})"
            ) from exc
        return credentials


def select_credential_resolver(settings: GatewaySettings) -> CredentialResolver:
    """Return the resolver for the highest-precedence configured source."""

    if settings.credentials_json:
        return InlineJSONCredentialResolver(settings.credentials_json)
    if settings.credentials_path:
        return FileCredentialResolver(settings.credentials_path)
    return DefaultCredentialResolver()
