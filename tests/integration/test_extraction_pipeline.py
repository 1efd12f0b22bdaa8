"""End-to-end extraction against the in-memory management service.

Covers the default extract-everything behaviour, configuration scenarios,
protected resources, idempotence, tier gating and all-or-nothing failure.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import structlog
from prometheus_client import REGISTRY

from apimextract.errors import ExtractionFailedError, RemoteRequestError, ValidationError
from apimextract.graph import kinds
from apimextract.models.ancestors import AncestorPath
from apimextract.models.resources import ResourceName

pytestmark = pytest.mark.integration

_FULL_TREE = {
    "policy.xml",
    "named values/backend-url/namedValueInformation.json",
    "tags/public/tagInformation.json",
    "tags/public/apis/echo-api/tagApiInformation.json",
    "loggers/appinsights/loggerInformation.json",
    "diagnostics/applicationinsights/diagnosticInformation.json",
    "policy fragments/cors/policyFragmentInformation.json",
    "policy fragments/cors/policy.xml",
    "products/starter/productInformation.json",
    "products/starter/policy.xml",
    "products/starter/apis/echo-api/productApiInformation.json",
    "products/starter/apis/weather-api/productApiInformation.json",
    "products/starter/groups/partners/productGroupInformation.json",
    "groups/partners/groupInformation.json",
    "subscriptions/starter-sub/subscriptionInformation.json",
    "apis/echo-api/apiInformation.json",
    "apis/echo-api/policy.xml",
    "apis/echo-api/diagnostics/d1/diagnosticInformation.json",
    "apis/echo-api/diagnostics/d2/diagnosticInformation.json",
    "apis/echo-api/operations/get/policy.xml",
    "apis/echo-api/releases/r1/apiReleaseInformation.json",
    "apis/weather-api/apiInformation.json",
    "gateways/g1/gatewayInformation.json",
    "gateways/g1/apis/echo-api/gatewayApiInformation.json",
}


def _json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def _skipped(kind: str, reason: str) -> float:
    return REGISTRY.get_sample_value("apimextract_resources_skipped_total", {"kind": kind, "reason": reason}) or 0.0


# ---------------------------------------------------------------------------
# No configuration
# ---------------------------------------------------------------------------


class TestWithoutConfiguration:
    async def test_everything_is_extracted(self, run_extract, tree) -> None:
        """With no configuration document every listed resource at every level is written."""
        out = await run_extract()
        assert set(tree(out)) == _FULL_TREE

    async def test_information_file_contents(self, run_extract) -> None:
        """Information files hold the normalized payloads."""
        out = await run_extract()
        assert _json(out / "apis/echo-api/apiInformation.json") == {
            "properties": {"isCurrent": True, "displayName": "Echo API", "protocols": ["https"], "path": "echo"}
        }
        assert _json(out / "apis/echo-api/diagnostics/d1/diagnosticInformation.json") == {
            "properties": {"loggerId": "/loggers/appinsights", "verbosity": "information"}
        }
        assert _json(out / "products/starter/apis/weather-api/productApiInformation.json") == {
            "name": "starter-weather",
            "properties": {"apiId": "/apis/weather-api"},
        }
        assert _json(out / "subscriptions/starter-sub/subscriptionInformation.json")["properties"]["scope"] == (
            "/products/starter"
        )
        assert _json(out / "gateways/g1/apis/echo-api/gatewayApiInformation.json") == {}

    async def test_policy_contents(self, run_extract) -> None:
        """Policies are written as raw XML."""
        out = await run_extract()
        assert (out / "policy.xml").read_text() == "<policies><inbound /></policies>"
        assert (out / "apis/echo-api/operations/get/policy.xml").read_text() == "<policies><op /></policies>"
        assert _json(out / "policy fragments/cors/policyFragmentInformation.json") == {
            "properties": {"description": "CORS"}
        }


# ---------------------------------------------------------------------------
# Configuration scenarios
# ---------------------------------------------------------------------------


class TestConfigurationScenarios:
    async def test_only_listed_api_is_extracted(self, run_extract) -> None:
        """Only the listed API is extracted."""
        out = await run_extract({"apis": ["echo-api"]})
        assert (out / "apis/echo-api").is_dir()
        assert not (out / "apis/weather-api").exists()

    async def test_configured_but_empty_list_excludes_all(self, run_extract) -> None:
        """An empty list excludes only its own kind."""
        out = await run_extract({"apis": [{"echo-api": {"diagnostics": []}}]})
        assert (out / "apis/echo-api/apiInformation.json").is_file()
        assert not (out / "apis/echo-api/diagnostics").exists()
        # Siblings of the restricted kind are unconfigured, so still extracted.
        assert (out / "apis/echo-api/operations/get/policy.xml").is_file()
        assert not (out / "apis/weather-api").exists()

    async def test_unconfigured_kinds_are_extracted(self, run_extract) -> None:
        """Kinds absent from the document are extracted in full."""
        out = await run_extract({"apis": ["echo-api"]})
        assert (out / "named values/backend-url/namedValueInformation.json").is_file()
        assert (out / "products/starter/productInformation.json").is_file()

    async def test_revisions_follow_their_root(self, run_extract, service) -> None:
        """Revisions of a listed API are extracted with it."""
        service.add("apis", "orders", displayName="Orders", path="orders")
        service.add("apis", "orders;rev=2", displayName="Orders", path="orders", apiRevision="2")
        out = await run_extract({"apis": ["orders"]})
        assert (out / "apis/orders/apiInformation.json").is_file()
        assert (out / "apis/orders;rev=2/apiInformation.json").is_file()
        assert not (out / "apis/echo-api").exists()

    async def test_links_filtered_by_linked_resource_name(self, run_extract) -> None:
        """Product API links are filtered by the linked API's name."""
        out = await run_extract({"products": [{"starter": {"apis": ["echo-api"]}}]})
        assert (out / "products/starter/apis/echo-api").is_dir()
        assert not (out / "products/starter/apis/weather-api").exists()
        assert (out / "products/starter/groups/partners").is_dir()
        assert (out / "apis/weather-api").is_dir()

    async def test_excluded_parent_stops_recursion(self, run_extract, service) -> None:
        """Children of an excluded API are never listed."""
        await run_extract({"apis": ["weather-api"]})
        assert "apis/echo-api/diagnostics" not in service.requests
        assert "apis/echo-api/operations" not in service.requests

    async def test_skip_is_logged(self, run_extract) -> None:
        """Each skipped resource is logged by kind and name."""
        with structlog.testing.capture_logs() as logs:
            await run_extract({"apis": ["echo-api"]})
        events = [entry["event"] for entry in logs]
        assert "Skipping API 'weather-api' as it is not in configuration." in events


# ---------------------------------------------------------------------------
# Protected resources
# ---------------------------------------------------------------------------


class TestProtectedResources:
    async def test_never_written_without_configuration(self, run_extract) -> None:
        """The master subscription and system groups are never written."""
        out = await run_extract()
        assert not (out / "subscriptions/master").exists()
        for group in ("administrators", "developers", "guests"):
            assert not (out / "groups" / group).exists()

    async def test_never_written_even_when_configured(self, run_extract) -> None:
        """Listing protected names does not make them written."""
        before = _skipped("subscription", "protected")
        out = await run_extract(
            {"subscriptions": ["master", "starter-sub"], "groups": ["Administrators", "partners"]}
        )
        assert not (out / "subscriptions/master").exists()
        assert not (out / "groups/administrators").exists()
        assert (out / "subscriptions/starter-sub").is_dir()
        assert (out / "groups/partners").is_dir()
        assert _skipped("subscription", "protected") == before + 1

    async def test_skip_warnings(self, run_extract) -> None:
        with structlog.testing.capture_logs() as logs:
            await run_extract()
        warnings = [entry["event"] for entry in logs if entry["log_level"] == "warning"]
        assert "Skipping master subscription 'master'." in warnings
        assert "Skipping system group 'administrators'." in warnings


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


class TestIdempotence:
    async def test_second_run_produces_identical_bytes(self, run_extract, tree) -> None:
        """Running twice into one directory changes no bytes."""
        out = await run_extract()
        first = tree(out)
        await run_extract()
        assert tree(out) == first

    async def test_independent_runs_match(self, run_extract, tree, tmp_path) -> None:
        """Two runs into different directories produce the same tree."""
        a = await run_extract({"apis": ["echo-api"]}, output_dir=tmp_path / "a")
        b = await run_extract({"apis": ["echo-api"]}, output_dir=tmp_path / "b")
        assert tree(a) == tree(b)


# ---------------------------------------------------------------------------
# Remote behaviour
# ---------------------------------------------------------------------------


class TestRemoteBehaviour:
    async def test_unsupported_kind_is_skipped(self, run_extract, service, tree) -> None:
        """Kinds the tier does not offer are skipped with their subtree."""
        service.unsupported.add("gateways")
        out = await run_extract()
        assert not (out / "gateways").exists()
        assert set(tree(out)) == {path for path in _FULL_TREE if not path.startswith("gateways/")}

    async def test_throttling_is_retried(self, run_extract, service, tree) -> None:
        """Throttled listings are retried until they succeed."""
        service.throttled["namedValues"] = 2
        out = await run_extract(max_retries=3)
        assert set(tree(out)) == _FULL_TREE

    async def test_pages_are_followed(self, run_extract, service) -> None:
        """Paged collections are read to the end."""
        service.page_size = 1
        out = await run_extract()
        assert (out / "apis/echo-api/diagnostics/d2").is_dir()


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------


class TestFailure:
    async def test_listing_failure_fails_the_run_with_its_path(self, run_extract, service) -> None:
        """A failed listing names the collection and its ancestors."""
        service.listing_failures["apis/echo-api/diagnostics"] = 403
        with pytest.raises(ExtractionFailedError) as exc_info:
            await run_extract()
        error = exc_info.value
        assert error.kind is kinds.API_DIAGNOSTIC
        assert error.name is None
        assert error.ancestors == AncestorPath.root().append(kinds.API, ResourceName("echo-api"))
        assert isinstance(error.cause, RemoteRequestError)
        assert error.location == "diagnostics in api 'echo-api'"

    async def test_exhausted_throttling_fails_the_run(self, run_extract, service) -> None:
        """Throttling past the retry limit fails the run."""
        service.throttled["tags"] = 10
        with pytest.raises(ExtractionFailedError) as exc_info:
            await run_extract(max_retries=1)
        assert exc_info.value.kind is kinds.TAG

    async def test_write_failure_names_the_resource(self, run_extract, service) -> None:
        """A payload that cannot be written names its resource."""
        service.add("products/starter/apiLinks", "broken-link")
        with pytest.raises(ExtractionFailedError) as exc_info:
            await run_extract()
        error = exc_info.value
        assert error.kind is kinds.PRODUCT_API
        assert error.name == ResourceName("broken-link")
        assert isinstance(error.cause, ValidationError)

    async def test_invalid_remote_name_fails_the_run(self, run_extract, service) -> None:
        """A blank remote name fails the run."""
        service.collections["loggers"].append({"name": "  ", "properties": {}})
        with pytest.raises(ExtractionFailedError) as exc_info:
            await run_extract()
        assert exc_info.value.kind is kinds.LOGGER
