"""Listing resources of one kind under an ancestor path."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog

from apimextract.cache.once import AsyncOnceCache
from apimextract.client.http import ManagementClient, is_unsupported_in_tier
from apimextract.errors import RemoteRequestError
from apimextract.models.ancestors import AncestorPath
from apimextract.models.resources import Composite, ResourceKind, ResourceName

_log = structlog.get_logger(component="client.listing")

_POLICY_PARAMS = {"format": "rawxml"}


class ResourceLister:
    """Enumerates resource instances through the management API.

    ``list`` yields ``(name, dto)`` pairs; ``dto`` is None for kinds that
    persist no payload.  Items listed without their ``properties`` are
    fetched individually.
    """

    def __init__(self, client: ManagementClient) -> None:
        self._client = client
        self._support: AsyncOnceCache[ResourceKind, bool] = AsyncOnceCache()

    async def list(
        self, kind: ResourceKind, ancestors: AncestorPath
    ) -> AsyncIterator[tuple[ResourceName, dict[str, Any] | None]]:
        url = self._client.collection_url(kind, ancestors)
        params = _POLICY_PARAMS if kind.is_policy else None
        async for item in self._client.iter_items(url, params):
            name = ResourceName(item.get("name"))  # type: ignore[arg-type]
            if kind.dto is None:
                yield name, None
                continue
            if "properties" not in item:
                item = await self.get(kind, ancestors, name)
            yield name, item

    async def get(self, kind: ResourceKind, ancestors: AncestorPath, name: ResourceName) -> dict[str, Any]:
        """Fetch one resource's payload."""
        params = _POLICY_PARAMS if kind.is_policy else None
        return await self._client.get_json(self._client.resource_url(kind, ancestors, name), params)

    async def is_supported(self, kind: ResourceKind, ancestors: AncestorPath) -> bool:
        """Whether the service's pricing tier offers *kind*.  Checked once per kind.

        A composite is supported when both of its halves are.
        """
        match kind:
            case ResourceKind(composite=Composite(primary=primary, secondary=secondary)):
                return await self.is_supported(primary, ancestors.parent) and await self.is_supported(
                    secondary, AncestorPath.root()
                )
            case _:
                return await self._support.get_or_compute(kind, lambda: self._check_support(kind, ancestors))

    def cancel_pending(self) -> None:
        """Stop tier support checks still in flight, e.g. after the run was cancelled."""
        cancelled = self._support.cancel_pending()
        if cancelled:
            _log.debug("pending tier support checks cancelled", count=cancelled)

    async def _check_support(self, kind: ResourceKind, ancestors: AncestorPath) -> bool:
        try:
            await self._client.get_json(self._client.collection_url(kind, ancestors), {"$top": "1"})
        except RemoteRequestError as exc:
            if is_unsupported_in_tier(exc):
                _log.warning("resource kind not supported in pricing tier, skipping", kind=kind.key)
                return False
            raise
        return True
