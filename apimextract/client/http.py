"""Async client for the API management REST API.

Every request carries the configured ``api-version`` and bearer token and is
retried on transient failures (transport errors, throttling, 5xx and the
service's own "try again" conflicts) with jittered exponential backoff.
A ``Retry-After`` header, when present, replaces the computed wait.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_random_exponential

from apimextract.errors import RemoteRequestError
from apimextract.models.ancestors import AncestorPath
from apimextract.models.config import HttpConfig, ServiceConfig
from apimextract.models.resources import ResourceKind, ResourceName
from apimextract.observability.metrics import http_requests_total, http_retries_total

_log = structlog.get_logger(component="client.http")

_RETRYABLE_STATUS = frozenset({408, 412, 429, 500, 502, 503, 504})
_RETRYABLE_CONFLICT_STATUS = frozenset({409, 422})
_RETRYABLE_CONFLICT_CODE = "ManagementApiRequestFailed"

_UNSUPPORTED_IN_TIER = {
    400: "MethodNotAllowedInPricingTier",
    500: "Request processing failed due to internal error",
}


class _RetryableStatusError(RemoteRequestError):
    """A response the service may answer differently if asked again."""

    def __init__(self, uri: str, status_code: int, content: str, retry_after: float | None) -> None:
        super().__init__(uri, status_code, content)
        self.retry_after = retry_after


def is_unsupported_in_tier(exc: RemoteRequestError) -> bool:
    """True if *exc* says the resource is not available in the service's pricing tier."""
    marker = _UNSUPPORTED_IN_TIER.get(exc.status_code or 0)
    return marker is not None and marker in exc.content


def _is_retryable_status(response: httpx.Response) -> bool:
    if response.status_code in _RETRYABLE_CONFLICT_STATUS:
        return _RETRYABLE_CONFLICT_CODE in response.text
    if response.status_code not in _RETRYABLE_STATUS:
        return False
    return not (response.status_code == 500 and _UNSUPPORTED_IN_TIER[500] in response.text)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, (_RetryableStatusError, httpx.TransportError))


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _quote_name(name: ResourceName) -> str:
    return quote(str(name), safe=";=")


class ManagementClient:
    """Thin wrapper around ``httpx.AsyncClient`` bound to one service.

    Args:
        service:   target service URL, api-version and credentials.
        http:      timeout, retry and concurrency settings.
        transport: optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        service: ServiceConfig,
        http: HttpConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if service.bearer_token:
            headers["Authorization"] = f"Bearer {service.bearer_token}"
        self._client = httpx.AsyncClient(timeout=http.timeout_seconds, headers=headers, transport=transport)
        self._service_url = service.service_url.rstrip("/")
        self._api_version = service.api_version
        self._max_retries = http.max_retries
        self._backoff = wait_random_exponential(multiplier=1, max=http.backoff_max_seconds)
        self._backoff_max = float(http.backoff_max_seconds)
        self._semaphore = asyncio.Semaphore(http.max_concurrency) if http.max_concurrency > 0 else None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ManagementClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # URIs
    # ------------------------------------------------------------------

    def collection_url(self, kind: ResourceKind, ancestors: AncestorPath) -> str:
        """``<service>/apis/echo-api/operations`` style collection URI."""
        segments = [self._service_url]
        for ancestor in ancestors:
            segments.append(ancestor.kind.collection_uri_path)
            segments.append(_quote_name(ancestor.name))
        segments.append(kind.collection_uri_path)
        return "/".join(segments)

    def resource_url(self, kind: ResourceKind, ancestors: AncestorPath, name: ResourceName) -> str:
        return f"{self.collection_url(kind, ancestors)}/{_quote_name(name)}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get_json(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET *url* (``api-version`` added) and decode the JSON object body."""
        query = {"api-version": self._api_version, **(params or {})}
        response = await self._request("GET", url, query)
        return self._decode(url, response)

    async def iter_items(self, url: str, params: dict[str, str] | None = None) -> AsyncIterator[dict[str, Any]]:
        """Yield every element of a paginated collection, following ``nextLink``."""
        next_url: str | None = url
        query: dict[str, str] | None = {"api-version": self._api_version, **(params or {})}
        while next_url is not None:
            response = await self._request("GET", next_url, query)
            page = self._decode(next_url, response)
            for item in page.get("value") or []:
                yield item
            next_url = page.get("nextLink") or None
            # nextLink already carries the query string
            query = None

    def _decode(self, url: str, response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteRequestError(url, response.status_code, f"Response is not JSON: {response.text[:200]}") from exc
        if not isinstance(payload, dict):
            raise RemoteRequestError(url, response.status_code, "Response is not a JSON object")
        return payload

    async def _request(self, method: str, url: str, params: dict[str, str] | None) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception(_is_transient),
            before_sleep=self._before_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._send(method, url, params)
        except httpx.TransportError as exc:
            raise RemoteRequestError(url, None, f"{type(exc).__name__}: {exc}") from exc
        return response

    async def _send(self, method: str, url: str, params: dict[str, str] | None) -> httpx.Response:
        if self._semaphore is None:
            response = await self._client.request(method, url, params=params)
        else:
            async with self._semaphore:
                response = await self._client.request(method, url, params=params)

        http_requests_total.labels(method=method, status=str(response.status_code)).inc()
        if response.is_success:
            return response
        if _is_retryable_status(response):
            raise _RetryableStatusError(url, response.status_code, response.text, _retry_after_seconds(response))
        raise RemoteRequestError(url, response.status_code, response.text)

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
        if isinstance(exc, _RetryableStatusError) and exc.retry_after is not None:
            return min(exc.retry_after, self._backoff_max)
        return self._backoff(retry_state)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        http_retries_total.inc()
        exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
        _log.warning(
            "retrying management API request",
            attempt=retry_state.attempt_number,
            wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
            error=str(exc),
        )

