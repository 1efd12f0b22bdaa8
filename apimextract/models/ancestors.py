"""Ancestor paths.

An AncestorPath is the ordered chain of (kind, name) pairs from a traversal
root down to a resource's parent.  Paths are immutable and hashable; they key
the inclusion filter caches and bind the logging context of each branch.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from apimextract.models.resources import ResourceKind, ResourceName


@dataclass(frozen=True)
class Ancestor:
    """One step of an ancestor path."""

    kind: ResourceKind
    name: ResourceName


@dataclass(frozen=True)
class AncestorPath:
    """Immutable, order-significant sequence of ancestors.

    Two paths are equal iff they hold the same kinds (by identity) with equal
    names, in the same order.
    """

    entries: tuple[Ancestor, ...] = ()

    @classmethod
    def root(cls) -> AncestorPath:
        return _ROOT

    def append(self, kind: ResourceKind, name: ResourceName) -> AncestorPath:
        return AncestorPath((*self.entries, Ancestor(kind, name)))

    @property
    def parent(self) -> AncestorPath:
        """The path without its last entry.  The root is its own parent."""
        if not self.entries:
            return self
        return AncestorPath(self.entries[:-1])

    @property
    def last(self) -> Ancestor | None:
        return self.entries[-1] if self.entries else None

    def prefixes(self) -> Iterator[AncestorPath]:
        """Yield ``[a]``, ``[a, b]``, ... up to and including this path."""
        for depth in range(1, len(self.entries) + 1):
            yield AncestorPath(self.entries[:depth])

    def to_log_string(self) -> str:
        """Render as `` in operation 'op' in api 'echo'``, innermost first."""
        return "".join(f" in {entry.kind.singular} '{entry.name}'" for entry in reversed(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Ancestor]:
        return iter(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __str__(self) -> str:
        return "/".join(f"{entry.kind.plural}/{entry.name}" for entry in self.entries)


_ROOT = AncestorPath()
