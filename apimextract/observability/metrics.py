"""Prometheus counters for an extraction run.

The extractor is a batch job, so nothing is served: when a metrics file is
configured the registry is written once in node-exporter textfile format.
"""

from __future__ import annotations

from pathlib import Path

from prometheus_client import REGISTRY, Counter, write_to_textfile

resources_listed_total = Counter(
    "apimextract_resources_listed_total",
    "Resource instances returned by the management API",
    ["kind"],
)

resources_written_total = Counter(
    "apimextract_resources_written_total",
    "Files written to the output tree",
    ["kind", "file"],
)

resources_skipped_total = Counter(
    "apimextract_resources_skipped_total",
    "Resource instances not extracted",
    ["kind", "reason"],
)

http_requests_total = Counter(
    "apimextract_http_requests_total",
    "Requests sent to the management API",
    ["method", "status"],
)

http_retries_total = Counter(
    "apimextract_http_retries_total",
    "Requests to the management API that were retried",
)


def write_metrics_file(path: Path) -> None:
    """Write the default registry to *path* (textfile collector format)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(path), REGISTRY)
