"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from apimextract.errors import ConfigurationError
from apimextract.models.config import ExtractorConfig, HttpConfig, LogConfig, ServiceConfig

_DEFAULT_MANAGEMENT_ENDPOINT = "https://management.azure.com"
_SUBSCRIPTION_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{8}-([0-9a-fA-F]{4}-){3}[0-9a-fA-F]{12}$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"APIMEXTRACT_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError:
        raise ConfigurationError(f"APIMEXTRACT_{key} must be an integer, got {raw!r}") from None
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_path(key: str) -> Path | None:
    value = _env(key)
    return Path(value) if value else None


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigurationError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_subscription_id(value: str) -> str:
    if not _SUBSCRIPTION_ID_PATTERN.match(value):
        raise ConfigurationError(f"Subscription id must be a GUID, got {value!r}")
    return value


def build_service_url(
    subscription_id: str,
    resource_group: str,
    service_name: str,
    management_endpoint: str = _DEFAULT_MANAGEMENT_ENDPOINT,
) -> str:
    """ARM URI of an API management service."""
    return (
        f"{management_endpoint.rstrip('/')}/subscriptions/{_validate_subscription_id(subscription_id)}"
        f"/resourceGroups/{resource_group}/providers/Microsoft.ApiManagement/service/{service_name}"
    )


def _service_url(overrides: dict[str, Any]) -> str:
    explicit = overrides.get("service_url") or _env("SERVICE_URL")
    if explicit:
        return str(explicit).rstrip("/")

    subscription_id = overrides.get("subscription_id") or _env("SUBSCRIPTION_ID")
    resource_group = overrides.get("resource_group") or _env("RESOURCE_GROUP")
    service_name = overrides.get("service_name") or _env("SERVICE_NAME")
    if not (subscription_id and resource_group and service_name):
        raise ConfigurationError(
            "Target service is not configured: set APIMEXTRACT_SERVICE_URL, or "
            "APIMEXTRACT_SUBSCRIPTION_ID, APIMEXTRACT_RESOURCE_GROUP and APIMEXTRACT_SERVICE_NAME"
        )
    return build_service_url(
        subscription_id,
        resource_group,
        service_name,
        _env("MANAGEMENT_ENDPOINT", _DEFAULT_MANAGEMENT_ENDPOINT),
    )


def load_config(**overrides: Any) -> ExtractorConfig:
    """Load configuration from APIMEXTRACT_* environment variables.

    Keyword overrides (as passed by the CLI) win over the environment; None
    values are ignored.
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}

    output_dir = overrides.get("output_dir") or _env("OUTPUT_DIR")
    if not output_dir:
        raise ConfigurationError("Output directory is not configured: set APIMEXTRACT_OUTPUT_DIR")

    configuration_path = overrides.get("configuration_path") or _env_path("CONFIGURATION_PATH")
    metrics_file = overrides.get("metrics_file") or _env_path("METRICS_FILE")

    http = HttpConfig(
        timeout_seconds=_env_int("HTTP_TIMEOUT", 60, min_val=1, max_val=600),
        max_retries=_env_int("HTTP_MAX_RETRIES", 5, min_val=0, max_val=10),
        backoff_max_seconds=_env_int("HTTP_BACKOFF_MAX", 30, min_val=0, max_val=300),
        max_concurrency=_env_int("MAX_CONCURRENCY", 0, min_val=0),
    )
    if "max_concurrency" in overrides:
        http.max_concurrency = max(int(overrides["max_concurrency"]), 0)

    return ExtractorConfig(
        output_dir=Path(output_dir),
        configuration_path=Path(configuration_path) if configuration_path else None,
        metrics_file=Path(metrics_file) if metrics_file else None,
        service=ServiceConfig(
            service_url=_service_url(overrides),
            api_version=_env("API_VERSION", "2022-08-01"),
            bearer_token=overrides.get("bearer_token") or _env("BEARER_TOKEN"),
        ),
        http=http,
        log=LogConfig(
            level=_validate_log_level(overrides.get("log_level") or _env("LOG_LEVEL", "info")),
        ),
    )
