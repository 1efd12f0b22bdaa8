"""Resource kind catalog and the static graph over it.

Submodules:
    kinds           -- Every resource kind of the management service.
    resource_graph  -- Roots, successors and dependency order.
"""

from apimextract.graph.resource_graph import ResourceGraph, default_graph

__all__ = ["ResourceGraph", "default_graph"]
