"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ServiceConfig:
    """Target API management service."""

    service_url: str = ""
    api_version: str = "2022-08-01"
    bearer_token: str = ""


@dataclass
class HttpConfig:
    """Management API client configuration."""

    timeout_seconds: int = 60
    max_retries: int = 5
    backoff_max_seconds: int = 30
    max_concurrency: int = 0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class ExtractorConfig:
    """Top-level extractor configuration."""

    output_dir: Path = field(default_factory=lambda: Path("."))
    configuration_path: Path | None = None
    metrics_file: Path | None = None
    service: ServiceConfig = field(default_factory=ServiceConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    log: LogConfig = field(default_factory=LogConfig)
