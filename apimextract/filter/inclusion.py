"""Inclusion filter: decides whether a listed resource should be extracted.

The verdict is three-valued.  UNCONFIGURED (no configuration applies) is
distinct from EXCLUDED (configured, and this name is not listed); the
pipeline extracts UNCONFIGURED resources.

Two caches back the filter:

* level 0 -- the parsed document, loaded at most once per run.
* level 1 -- the configuration section resolved for each ancestor path.
  Resolving ``[a, b, c]`` resolves and caches ``[a]`` then ``[a, b]`` first,
  so siblings under a shared prefix reuse the parent's resolution.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import StrEnum
from functools import partial
from pathlib import Path

import structlog

from apimextract.cache.once import AsyncLazy, OnceCache
from apimextract.filter.configuration import (
    ConfigurationSection,
    entry_name,
    entry_section,
    is_missing,
    read_document,
    section_value,
    validate_document,
)
from apimextract.graph.resource_graph import ResourceGraph
from apimextract.models.ancestors import AncestorPath
from apimextract.models.resources import ResourceKind, ResourceName, revision_root

_log = structlog.get_logger(component="filter.inclusion")


class Inclusion(StrEnum):
    """Filter verdict for one resource."""

    INCLUDED = "included"
    EXCLUDED = "excluded"
    UNCONFIGURED = "unconfigured"


class InclusionFilter:
    """Matches resources against the nested configuration document.

    Args:
        document_loader: coroutine factory returning the parsed document, or
                         None when no document was supplied.  Awaited once.
    """

    def __init__(self, document_loader: Callable[[], Awaitable[ConfigurationSection | None]]) -> None:
        self._document: AsyncLazy[ConfigurationSection | None] = AsyncLazy(document_loader)
        self._sections: OnceCache[AncestorPath, ConfigurationSection | None] = OnceCache()

    @classmethod
    def from_path(cls, path: Path | None, graph: ResourceGraph) -> InclusionFilter:
        async def _load() -> ConfigurationSection | None:
            return await read_document(path, graph)

        return cls(_load)

    @classmethod
    def from_document(cls, document: ConfigurationSection | None, graph: ResourceGraph | None = None) -> InclusionFilter:
        """Filter over an in-memory document, validated against *graph* when given."""
        if document is not None and graph is not None:
            validate_document(document, graph)

        async def _load() -> ConfigurationSection | None:
            return document

        return cls(_load)

    @property
    def resolutions(self) -> int:
        """Number of ancestor paths resolved so far."""
        return self._sections.computations

    async def load(self) -> None:
        """Load the document now so a malformed one fails before any listing."""
        await self._document.get()

    async def is_included(self, kind: ResourceKind, name: ResourceName, ancestors: AncestorPath) -> Inclusion:
        document = await self._document.get()
        if document is None:
            return Inclusion.UNCONFIGURED

        section = self._resolve(document, ancestors)
        if section is None:
            return Inclusion.UNCONFIGURED

        entries = section_value(section, kind.plural)
        if is_missing(entries):
            return Inclusion.UNCONFIGURED

        configured = {entry_name(entry) for entry in entries}
        if name in configured:
            return Inclusion.INCLUDED
        if kind.supports_revisions:
            root = revision_root(name)
            if root is not None and root in configured:
                return Inclusion.INCLUDED
        return Inclusion.EXCLUDED

    def _resolve(self, document: ConfigurationSection, ancestors: AncestorPath) -> ConfigurationSection | None:
        """Fold over the prefixes of *ancestors*, caching each level's section.

        Stops at the first level that yields no section.
        """
        section: ConfigurationSection | None = document
        for prefix in ancestors.prefixes():
            section = self._sections.get_or_compute(prefix, partial(self._resolve_last, section, prefix))
            if section is None:
                break
        return section

    def _resolve_last(self, parent_section: ConfigurationSection, ancestors: AncestorPath) -> ConfigurationSection | None:
        last = ancestors.last
        assert last is not None
        section = _child_section(parent_section, last.kind, last.name)
        _log.debug("configuration section resolved", ancestors=str(ancestors), found=section is not None)
        return section


def _child_section(
    section: ConfigurationSection, kind: ResourceKind, name: ResourceName
) -> ConfigurationSection | None:
    """Section nested under *name* in *kind*'s list, or None if there is not exactly one."""
    entries = section_value(section, kind.plural)
    if is_missing(entries) or not isinstance(entries, list):
        return None

    candidates = [name]
    if kind.supports_revisions:
        root = revision_root(name)
        if root is not None:
            candidates.append(root)

    for candidate in candidates:
        matches: list[ConfigurationSection] = []
        for entry in entries:
            if not isinstance(entry, dict) or entry_name(entry) != candidate:
                continue
            nested = entry_section(entry)
            if isinstance(nested, dict):
                matches.append(nested)
        if len(matches) == 1:
            return matches[0]
    return None
