"""Configuration for the GHL sales contacts -> Google Sheets sync."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Tuple

GHL_BASE_URL = "https://services.leadconnectorhq.com"
GHL_API_VERSION = "2021-07-28"

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
BODY_RANGE = "A2:Z10000"

# Pagination / rate limiting
PAGE_SIZE = 100
PAGE_DELAY_S = 0.1
RATE_LIMIT_WAIT_S = 60
REQUEST_TIMEOUT_S = 45
MAX_PAGES = 500
DUPLICATE_THRESHOLD = 50

CREDENTIAL_MODES = ("per_location", "shared")


class ConfigError(ValueError):
    """Raised when required top-level settings are missing or malformed."""


@dataclass(frozen=True)
class LocationConfig:
    id: str
    name: str
    api_key_env: str


@dataclass(frozen=True)
class CustomFieldKeys:
    sale_team_member: str = "sale_team_member"
    tour_team_member: str = "tour_team_member"
    same_day_sale: str = "same_day_sale"
    day_one_booked: str = "day_one_booked"


DEFAULT_LOCATIONS: Tuple[LocationConfig, ...] = (
    LocationConfig("xXV3CXt5DkgfGnTt8CG1", "Springfield", "GHL_API_KEY_SPRINGFIELD"),
    LocationConfig("uflpfHNpByAnaBLkQzu3", "Salem", "GHL_API_KEY_SALEM"),
    LocationConfig("g75BBgiSvlCRbvxYRMAb", "Keizer", "GHL_API_KEY_KEIZER"),
    LocationConfig("NNTZT21fPm3SxpLg8s04", "Eugene", "GHL_API_KEY_EUGENE"),
    LocationConfig("aqSDfuZLimMXuPz6Zx3p", "Clackamas", "GHL_API_KEY_CLACKAMAS"),
    LocationConfig("BQfUepBFzqVan4ruCQ6R", "Milwaukie", "GHL_API_KEY_MILWAUKIE"),
)


@dataclass(frozen=True)
class SyncConfig:
    spreadsheet_id: str
    credentials_json: Optional[str] = None
    service_account_file: Optional[str] = None
    locations: Tuple[LocationConfig, ...] = DEFAULT_LOCATIONS
    custom_fields: CustomFieldKeys = field(default_factory=CustomFieldKeys)
    sale_tag: str = "sale"
    days_back: int = 60
    sheet_name: str = "Raw Data"
    credential_mode: str = "per_location"
    shared_api_key_env: str = "GHL_API_KEY"
    base_url: str = GHL_BASE_URL
    api_version: str = GHL_API_VERSION
    page_size: int = PAGE_SIZE
    page_delay: float = PAGE_DELAY_S
    rate_limit_wait: float = RATE_LIMIT_WAIT_S
    request_timeout: float = REQUEST_TIMEOUT_S
    max_pages: int = MAX_PAGES
    duplicate_threshold: int = DUPLICATE_THRESHOLD


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """
    Build the sync configuration from environment variables.

    GOOGLE_SHEET_ID is required, plus either GOOGLE_CREDENTIALS (service
    account JSON, GitHub Actions mode) or SERVICE_ACCOUNT_FILE (local mode).
    """
    if environ is None:
        environ = os.environ

    spreadsheet_id = environ.get("GOOGLE_SHEET_ID")
    if not spreadsheet_id:
        raise ConfigError("GOOGLE_SHEET_ID not set")

    credentials_json = environ.get("GOOGLE_CREDENTIALS") or None
    service_account_file = environ.get("SERVICE_ACCOUNT_FILE") or None
    if not credentials_json and not service_account_file:
        raise ConfigError(
            "No credentials found. Either set GOOGLE_CREDENTIALS "
            "or provide SERVICE_ACCOUNT_FILE path in .env"
        )

    credential_mode = environ.get("GHL_CREDENTIAL_MODE", "per_location").strip().lower()
    if credential_mode not in CREDENTIAL_MODES:
        raise ConfigError(
            f"GHL_CREDENTIAL_MODE must be one of {', '.join(CREDENTIAL_MODES)}, got {credential_mode!r}"
        )

    days_back = _get_int(environ, "DAYS_BACK", 60)
    if days_back < 0:
        raise ConfigError("DAYS_BACK must not be negative")

    return SyncConfig(
        spreadsheet_id=spreadsheet_id,
        credentials_json=credentials_json,
        service_account_file=service_account_file,
        sale_tag=environ.get("SALE_TAG") or "sale",
        days_back=days_back,
        sheet_name=environ.get("SHEET_NAME") or "Raw Data",
        credential_mode=credential_mode,
        max_pages=_get_int(environ, "GHL_MAX_PAGES", MAX_PAGES),
        duplicate_threshold=_get_int(environ, "GHL_DUPLICATE_THRESHOLD", DUPLICATE_THRESHOLD),
        request_timeout=_get_int(environ, "GHL_REQUEST_TIMEOUT", REQUEST_TIMEOUT_S),
    )


def api_key_env_for(config: SyncConfig, location: LocationConfig) -> str:
    if config.credential_mode == "shared":
        return config.shared_api_key_env
    return location.api_key_env


def resolve_api_key(
    config: SyncConfig,
    location: LocationConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Return the GHL API key for a location, or None if it isn't configured."""
    if environ is None:
        environ = os.environ
    return environ.get(api_key_env_for(config, location)) or None


def window_start(days_back: int, now: Optional[datetime] = None) -> datetime:
    """Start of the rolling window, `days_back` days before now (UTC)."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now - timedelta(days=days_back)
