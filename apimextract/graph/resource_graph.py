"""Static graph over resource kinds.

Two relations are kept apart:

* traversal -- a kind is listed under instances of its *traversal
  predecessor* (the parent of a child, the first half of a composite).
  ``roots()`` and ``successors()`` answer from this relation.
* dependency -- parents, both composite halves and referenced kinds.  It only
  drives ``kinds`` (dependency order) and rejects cycles at construction.
"""

from __future__ import annotations

from collections.abc import Iterable
from graphlib import CycleError, TopologicalSorter

from apimextract.errors import GraphError
from apimextract.models.resources import ResourceKind


class ResourceGraph:
    """Immutable graph over a closed set of resource kinds."""

    def __init__(self, kinds: Iterable[ResourceKind]) -> None:
        declared = tuple(dict.fromkeys(kinds))
        members = set(declared)

        for kind in declared:
            for predecessor in kind.dependency_predecessors:
                if predecessor not in members:
                    raise GraphError(f"Kind '{kind.key}' depends on '{predecessor.key}' which is not in the graph")

        sorter: TopologicalSorter[ResourceKind] = TopologicalSorter()
        for kind in declared:
            sorter.add(kind, *kind.dependency_predecessors)
        try:
            ordered = tuple(sorter.static_order())
        except CycleError as exc:
            cycle = " -> ".join(kind.key for kind in exc.args[1])
            raise GraphError(f"Circular dependency between resource kinds: {cycle}") from exc

        self._kinds = ordered
        self._roots = frozenset(kind for kind in ordered if kind.traversal_predecessor is None)
        successors: dict[ResourceKind, set[ResourceKind]] = {kind: set() for kind in ordered}
        for kind in ordered:
            predecessor = kind.traversal_predecessor
            if predecessor is not None:
                successors[predecessor].add(kind)
        self._successors = {kind: frozenset(children) for kind, children in successors.items()}

    @property
    def kinds(self) -> tuple[ResourceKind, ...]:
        """Every kind, each after all of its dependency predecessors."""
        return self._kinds

    def roots(self) -> frozenset[ResourceKind]:
        """Kinds where top-level extraction begins."""
        return self._roots

    def successors(self, kind: ResourceKind) -> frozenset[ResourceKind]:
        """Kinds listed under an instance of *kind*."""
        try:
            return self._successors[kind]
        except KeyError:
            raise GraphError(f"Unknown resource kind '{kind.key}'") from None

    def ordered(self, kinds: Iterable[ResourceKind]) -> list[ResourceKind]:
        """Sort *kinds* by dependency order so fan-out is deterministic."""
        position = {kind: index for index, kind in enumerate(self._kinds)}
        return sorted(kinds, key=lambda kind: position[kind])


def default_graph() -> ResourceGraph:
    """Graph over the full catalog of management service kinds."""
    from apimextract.graph.kinds import ALL_KINDS

    return ResourceGraph(ALL_KINDS)
