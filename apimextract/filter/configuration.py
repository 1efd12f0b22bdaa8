"""Loading and validation of the extraction configuration document.

The document mirrors the resource graph.  At each level a kind's plural
label maps to a list whose elements are either a bare name or a single-key
map from a name to that instance's own nested section::

    apis:
      - echo-api:
          diagnostics: []
      - weather-api
    named values:
      - backend-url

Keys that are not the plural label of a kind reachable at that level are
ignored, so the same file may carry unrelated settings.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
import yaml

from apimextract.errors import ConfigurationError, InvalidResourceNameError
from apimextract.graph.resource_graph import ResourceGraph
from apimextract.models.resources import ResourceKind, ResourceName

_log = structlog.get_logger(component="filter.configuration")

_MISSING = object()

ConfigurationSection = dict[str, Any]


def load_document(path: Path) -> ConfigurationSection:
    """Parse *path* as JSON (``.json``) or YAML (anything else)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc

    try:
        document = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot parse configuration file {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping at the top level")
    return document


async def read_document(path: Path | None, graph: ResourceGraph) -> ConfigurationSection | None:
    """Load and validate the document at *path*; None when no path is given."""
    if path is None:
        _log.info("no configuration document supplied, extracting everything")
        return None
    document = await asyncio.to_thread(load_document, path)
    validate_document(document, graph)
    _log.info("configuration document loaded", path=str(path))
    return document


def section_value(section: ConfigurationSection, label: str) -> Any:
    """Value under *label* in *section*, matching keys case-insensitively.

    Returns the module sentinel ``_MISSING`` when absent; use ``is_missing``
    to test for presence.
    """
    if label in section:
        return section[label]
    folded = label.casefold()
    for key, value in section.items():
        if isinstance(key, str) and key.casefold() == folded:
            return value
    return _MISSING


def is_missing(value: Any) -> bool:
    return value is _MISSING


def entry_name(entry: Any) -> ResourceName:
    """Name of a list element: the scalar itself, or the single map key.

    YAML reads bare names such as ``2024`` as numbers; they are names like
    any other, as they already are when written as a map key.
    """
    if isinstance(entry, str):
        return ResourceName(entry)
    if isinstance(entry, int | float) and not isinstance(entry, bool):
        return ResourceName(str(entry))
    if isinstance(entry, dict) and len(entry) == 1:
        (key,) = entry
        return ResourceName(str(key))
    raise ConfigurationError(f"Configuration entry must be a name or a single-key mapping, got {entry!r}")


def entry_section(entry: Any) -> ConfigurationSection | None:
    """Nested section of a list element, or None for a bare name."""
    if isinstance(entry, dict) and len(entry) == 1:
        (value,) = entry.values()
        return value
    return None


def validate_document(document: ConfigurationSection, graph: ResourceGraph) -> None:
    """Raise ConfigurationError for the first malformed node in *document*."""
    _validate_section(document, graph.roots(), graph, path="")


def _validate_section(
    section: ConfigurationSection,
    kinds: frozenset[ResourceKind],
    graph: ResourceGraph,
    path: str,
) -> None:
    for kind in kinds:
        entries = section_value(section, kind.plural)
        if is_missing(entries):
            continue
        location = f"{path}/{kind.plural}"
        if not isinstance(entries, list):
            raise ConfigurationError(f"'{location}' must be a list, got {type(entries).__name__}")

        seen: set[ResourceName] = set()
        for entry in entries:
            try:
                name = entry_name(entry)
            except InvalidResourceNameError as exc:
                raise ConfigurationError(f"'{location}' contains an invalid name: {exc}") from exc
            except ConfigurationError as exc:
                raise ConfigurationError(f"'{location}': {exc}") from exc
            if name in seen:
                raise ConfigurationError(f"'{location}' lists '{name}' more than once")
            seen.add(name)

            nested = entry_section(entry)
            if nested is None:
                continue
            if not isinstance(nested, dict):
                raise ConfigurationError(
                    f"'{location}/{name}' must map to a mapping, got {type(nested).__name__}"
                )
            _validate_section(nested, graph.successors(kind), graph, path=f"{location}/{name}")
