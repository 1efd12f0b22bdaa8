"""Management API access.

Submodules:
    http     -- Retrying, paginating httpx client bound to one service.
    listing  -- Per-kind listing, single-resource fetch and tier support check.
"""

from apimextract.client.http import ManagementClient
from apimextract.client.listing import ResourceLister

__all__ = ["ManagementClient", "ResourceLister"]
