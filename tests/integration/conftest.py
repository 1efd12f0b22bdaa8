"""Shared fixtures for apimextract integration tests.

Provides an in-memory management service (served through
``httpx.MockTransport``) seeded with a small but complete service, and a
helper that runs a full extraction against it into a temporary directory.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
import pytest

from apimextract.client.http import ManagementClient
from apimextract.client.listing import ResourceLister
from apimextract.extractor.pipeline import ExtractionContext, run_extraction
from apimextract.filter.inclusion import InclusionFilter
from apimextract.graph.resource_graph import default_graph
from apimextract.models.config import HttpConfig, ServiceConfig
from apimextract.writer.filesystem import ResourceWriter

SERVICE_URL = (
    "https://management.example.com/subscriptions/00000000-1111-2222-3333-444444444444"
    "/resourceGroups/rg/providers/Microsoft.ApiManagement/service/apim"
)
SERVICE_PATH = urlparse(SERVICE_URL).path

# ---------------------------------------------------------------------------
# Fake management service
# ---------------------------------------------------------------------------


class FakeManagementService:
    """Answers list and get requests from in-memory collections.

    Collections are keyed by their path relative to the service, e.g.
    ``apis/echo-api/diagnostics``.  Unknown collections are empty.
    """

    def __init__(self, page_size: int = 1) -> None:
        self.page_size = page_size
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.unsupported: set[str] = set()
        self.listing_failures: dict[str, int] = {}
        self.throttled: dict[str, int] = {}
        self.requests: list[str] = []

    def add(self, collection: str, name: str, **properties: Any) -> dict[str, Any]:
        item = {"id": f"{SERVICE_PATH}/{collection}/{name}", "name": name, "properties": properties}
        self.collections.setdefault(collection, []).append(item)
        return item

    def arm_id(self, relative: str) -> str:
        return f"{SERVICE_PATH}/{relative}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        relative = request.url.path[len(SERVICE_PATH) :].strip("/")
        params = request.url.params
        self.requests.append(relative)

        if self.throttled.get(relative, 0) > 0:
            self.throttled[relative] -= 1
            return httpx.Response(429, headers={"Retry-After": "0"}, text="throttled")
        if relative in self.unsupported:
            return httpx.Response(400, json={"error": {"code": "MethodNotAllowedInPricingTier"}})
        if relative in self.listing_failures and "$top" not in params:
            return httpx.Response(self.listing_failures[relative], text="injected failure")

        collection, _, name = relative.rpartition("/")
        if relative not in self.collections and collection in self.collections:
            for item in self.collections[collection]:
                if item["name"] == name:
                    return httpx.Response(200, json=item)

        items = self.collections.get(relative, [])
        if "$top" in params:
            return httpx.Response(200, json={"value": items[: int(params["$top"])]})

        skip = int(params.get("$skiptoken", "0"))
        page: dict[str, Any] = {"value": items[skip : skip + self.page_size]}
        if skip + self.page_size < len(items):
            page["nextLink"] = (
                f"{SERVICE_URL}/{relative}?api-version={params.get('api-version', '')}"
                f"&$skiptoken={skip + self.page_size}"
            )
        return httpx.Response(200, json=page)


def _seed(service: FakeManagementService) -> None:
    service.add("namedValues", "backend-url", displayName="backend-url", value="https://backend", secret=False)
    service.add("tags", "public", displayName="Public")
    service.add("tags/public/apiLinks", "public-echo", apiId=service.arm_id("apis/echo-api"))
    service.add("loggers", "appinsights", loggerType="applicationInsights", isBuffered=True)
    service.add("diagnostics", "applicationinsights", loggerId=service.arm_id("loggers/appinsights"))
    service.add("policyFragments", "cors", description="CORS", format="rawxml", value="<fragment><cors /></fragment>")
    service.add("policies", "policy", format="rawxml", value="<policies><inbound /></policies>")

    service.add("products", "starter", displayName="Starter", state="published", subscriptionRequired=True)
    service.add("products/starter/apiLinks", "starter-echo", apiId=service.arm_id("apis/echo-api"))
    service.add("products/starter/apiLinks", "starter-weather", apiId=service.arm_id("apis/weather-api"))
    service.add("products/starter/groupLinks", "starter-partners", groupId=service.arm_id("groups/partners"))
    service.add("products/starter/policies", "policy", format="rawxml", value="<policies><product /></policies>")

    for group in ("administrators", "developers", "guests", "partners"):
        service.add("groups", group, displayName=group.title(), type="custom")
    service.add("subscriptions", "master", displayName="Built-in all-access subscription", scope=SERVICE_PATH)
    service.add("subscriptions", "starter-sub", displayName="Starter", scope=service.arm_id("products/starter"))

    service.add("apis", "echo-api", displayName="Echo API", path="echo", protocols=["https"], isCurrent=True)
    service.add("apis", "weather-api", displayName="Weather API", path="weather", protocols=["https"])
    service.add("apis/echo-api/policies", "policy", format="rawxml", value="<policies><api /></policies>")
    service.add("apis/echo-api/diagnostics", "d1", loggerId=service.arm_id("loggers/appinsights"), verbosity="information")
    service.add("apis/echo-api/diagnostics", "d2", loggerId=service.arm_id("loggers/appinsights"), verbosity="error")
    service.add("apis/echo-api/operations", "get", displayName="Get", method="GET", urlTemplate="/")
    service.add("apis/echo-api/operations/get/policies", "policy", format="rawxml", value="<policies><op /></policies>")
    service.add("apis/echo-api/releases", "r1", apiId=service.arm_id("apis/echo-api"), notes="first")

    service.add("gateways", "g1", description="On-premises gateway")
    service.add("gateways/g1/apis", "echo-api", path="echo")


@pytest.fixture
def service() -> FakeManagementService:
    fake = FakeManagementService()
    _seed(fake)
    return fake


# ---------------------------------------------------------------------------
# Running an extraction
# ---------------------------------------------------------------------------

RunExtraction = Callable[..., Awaitable[Path]]


@pytest.fixture
def run_extract(service: FakeManagementService, tmp_path: Path) -> RunExtraction:
    """Run a full extraction against *service*; returns the output directory."""

    async def _run(
        document: dict[str, Any] | None = None,
        output_dir: Path | None = None,
        max_retries: int = 0,
    ) -> Path:
        out = output_dir or tmp_path / "out"
        graph = default_graph()
        client = ManagementClient(
            ServiceConfig(service_url=SERVICE_URL, bearer_token="token"),
            HttpConfig(max_retries=max_retries, backoff_max_seconds=0),
            transport=httpx.MockTransport(service.handler),
        )
        context = ExtractionContext(
            graph=graph,
            lister=ResourceLister(client),
            inclusion=InclusionFilter.from_document(document, graph),
            writer=ResourceWriter(out),
        )
        try:
            await run_extraction(context)
        finally:
            await client.aclose()
        return out

    return _run


def snapshot(root: Path) -> dict[str, bytes]:
    """Every file under *root*, keyed by its posix path relative to *root*."""
    if not root.exists():
        return {}
    return {path.relative_to(root).as_posix(): path.read_bytes() for path in sorted(root.rglob("*")) if path.is_file()}


@pytest.fixture
def tree() -> Callable[[Path], dict[str, bytes]]:
    return snapshot
