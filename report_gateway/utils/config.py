"""Configuration helpers for environment-aware setup."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping
import os

from dotenv import load_dotenv

from ..errors import ConfigurationError
from ..reports import CUSTOM_REPORT_DATE_RANGE

__all__ = [
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT_SECONDS",
    "EnvironmentSettings",
    "GatewaySettings",
    "load_environment_settings",
    "log_configuration_snapshot",
]

DEFAULT_PORT = 8080
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CUSTOM_REPORT_START_DATE, DEFAULT_CUSTOM_REPORT_END_DATE = CUSTOM_REPORT_DATE_RANGE


@dataclass(frozen=True)
class EnvironmentSettings:
    """Represents the environment configuration detected at runtime."""

    name: str
    loaded_files: tuple[str, ...]

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value for ``key`` from the process environment."""

        value = os.getenv(key)
        if value is None:
            return default
        return value


def load_environment_settings(
    *, env: str | None = None, project_root: str | Path | None = None
) -> EnvironmentSettings:
    """Load layered ``.env`` files into the process environment.

    Files are applied most specific first and never override variables that are
    already set, so the real environment always wins over any file and
    ``.env.<env>.local`` wins over ``.env``.
    """

    root = Path(project_root or Path.cwd())
    name = (env or os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "development").strip()
    name = name or "development"
    slug = name.lower()
    ordered_files: list[Path] = [
        root / f".env.{slug}.local",
        root / f".env.{slug}",
        root / ".env.local",
        root / ".env",
    ]

    loaded_files: list[str] = []
    for candidate in ordered_files:
        if not candidate.is_file():
            continue
        load_dotenv(candidate, override=False)
        loaded_files.append(str(candidate))

    return EnvironmentSettings(name=name, loaded_files=tuple(loaded_files))


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_float(key: str, raw: str | None, default: float) -> float:
    raw = _optional(raw)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{key} must be greater than zero")
    return value


def _parse_port(raw: str | None) -> int:
    raw = _optional(raw)
    if raw is None:
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"PORT must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT out of range: {port}")
    return port


@dataclass(frozen=True)
class GatewaySettings:
    """Google Analytics settings resolved once at startup."""

    credentials_json: str | None = None
    credentials_path: str | None = None
    view_id: str | None = None
    property_id: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    custom_report_start_date: str = DEFAULT_CUSTOM_REPORT_START_DATE
    custom_report_end_date: str = DEFAULT_CUSTOM_REPORT_END_DATE
    port: int = DEFAULT_PORT

    @classmethod
    def from_environment(cls, settings: EnvironmentSettings) -> "GatewaySettings":
        """Build typed settings, raising ``ConfigurationError`` on invalid values."""

        return cls(
            credentials_json=_optional(settings.get("GA_CREDENTIALS")),
            credentials_path=_optional(settings.get("GA_CREDENTIALS_PATH")),
            view_id=_optional(settings.get("GA_VIEW_ID")),
            property_id=_optional(settings.get("GA_PROPERTY_ID")),
            timeout_seconds=_parse_float(
                "GA_TIMEOUT_SECONDS", settings.get("GA_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECONDS
            ),
            custom_report_start_date=_optional(settings.get("GA_CUSTOM_REPORT_START_DATE"))
            or DEFAULT_CUSTOM_REPORT_START_DATE,
            custom_report_end_date=_optional(settings.get("GA_CUSTOM_REPORT_END_DATE"))
            or DEFAULT_CUSTOM_REPORT_END_DATE,
            port=_parse_port(settings.get("PORT")),
        )

    def missing_identifiers(self) -> list[str]:
        """Return the names of report identifiers that are not configured."""

        missing = []
        if not self.view_id:
            missing.append("GA_VIEW_ID")
        if not self.property_id:
            missing.append("GA_PROPERTY_ID")
        return missing


_SENSITIVE_KEYS = frozenset({"GA_CREDENTIALS"})


def _sanitize_value(key: str, value: Any) -> Any:
    markers = ("SECRET", "PASSWORD", "TOKEN", "KEY")
    upper_key = key.upper()
    if not value:
        return value
    if upper_key in _SENSITIVE_KEYS or any(marker in upper_key for marker in markers):
        return "***"
    return value


def log_configuration_snapshot(
    *,
    logger: Any,
    settings: EnvironmentSettings,
    config: Mapping[str, Any],
    keys_of_interest: Iterable[str],
) -> None:
    """Log a sanitized snapshot of the runtime configuration."""

    snapshot = {
        key: _sanitize_value(key, config.get(key))
        for key in keys_of_interest
        if key in config
    }
    logger.info(
        "Runtime configuration initialised",
        extra={
            "environment": settings.name,
            "env_files": settings.loaded_files,
            "config_snapshot": snapshot,
        },
    )
