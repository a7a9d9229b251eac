"""Remote gateway — deduplicated, retried, cached access to the TaskFlow service.

Usage::

    async with RemoteGateway("http://localhost:3000/api") as gateway:
        result = await gateway.fetch_resource("/tasks", RequestOptions(token=token))
        if result:
            print(result.data)

        templates = await gateway.get_task_templates()   # cached for the TTL
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from .. import __version__
from ..errors import RemoteRejectedError, TaskflowError, TransportError
from ..types import Result, utc_now_iso
from ..utils.metrics import GatewayMetrics
from ..utils.retry import RetryConfig, with_retry
from .cache import TTLCache
from .inflight import InFlightTracker, make_request_key

logger = logging.getLogger(__name__)

# Cache key -> document name under data_url.
CATALOG_DOCUMENTS = {
    "categories": "categories.json",
    "taskTemplates": "taskTemplates.json",
    "statistics": "statistics.json",
}


@dataclass
class RequestOptions:
    """Per-call request options. Part of the dedup key."""
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    params: dict[str, Any] | None = None
    token: str | None = None

    def key_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "method": self.method.upper(),
            "headers": self.headers,
            "json": self.json,
            "params": self.params,
        }
        if self.token:
            # Distinguishes callers without putting the credential in logs.
            fields["auth"] = hashlib.sha256(self.token.encode()).hexdigest()[:16]
        return fields


def default_data_url(base_url: str) -> str:
    """Catalog location next to the API root: ``http://host/api`` -> ``http://host/data/``."""
    root = base_url.rstrip("/")
    if root.endswith("/api"):
        root = root[: -len("/api")]
    return f"{root}/data/"


def _rejection_message(response: httpx.Response) -> str:
    """Prefer the server's own error text, as the web client showed it."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return f"HTTP {response.status_code}: {body['error']}"
    return f"HTTP error! status: {response.status_code}"


def _validate_categories(data: Any) -> None:
    if not isinstance(data, (dict, list)):
        raise ValueError("categories document must be an object or array")


def _validate_templates(data: Any) -> None:
    if not isinstance(data, dict) or not isinstance(data.get("templates"), list):
        raise ValueError("taskTemplates document has no 'templates' array")
    for item in data["templates"]:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            raise ValueError("taskTemplates entry without a name")


def _validate_statistics(data: Any) -> None:
    if not isinstance(data, dict) or not isinstance(data.get("statistics"), dict):
        raise ValueError("statistics document has no 'statistics' object")


_VALIDATORS: dict[str, Callable[[Any], None]] = {
    "categories": _validate_categories,
    "taskTemplates": _validate_templates,
    "statistics": _validate_statistics,
}


class RemoteGateway:
    """Single point of network access for the data-access layer.

    Owns one TTL cache and one in-flight tracker; every caller holding this
    instance shares them. All public coroutines return ``Result`` (or plain
    data for the catalog helpers) and never raise.
    """

    def __init__(
        self,
        base_url: str,
        data_url: str | None = None,
        *,
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        cache: TTLCache | None = None,
        cache_enabled: bool = True,
        tracker: InFlightTracker | None = None,
        metrics: GatewayMetrics | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._data_url = (data_url or default_data_url(self._base_url)).rstrip("/") + "/"
        self._timeout = timeout
        self._retry = retry or RetryConfig()
        self._cache = cache or TTLCache()
        self._cache_enabled = cache_enabled
        self._tracker = tracker or InFlightTracker()
        self._metrics = metrics or GatewayMetrics()
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._sleep = sleep

    # === Lifecycle ===

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @property
    def tracker(self) -> InFlightTracker:
        return self._tracker

    @property
    def metrics(self) -> GatewayMetrics:
        return self._metrics

    def resolve(self, url: str) -> str:
        """Absolute URL for ``url``; relative paths hang off ``base_url``."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}/{url.lstrip('/')}"

    # === Core request path ===

    async def fetch_resource(self, url: str, options: RequestOptions | None = None) -> Result:
        """Fetch ``url`` with dedup and retry.

        Concurrent calls with the same URL and options share one network
        exchange and receive the same ``Result``.
        """
        options = options or RequestOptions()
        full_url = self.resolve(url)
        key = make_request_key(full_url, options.key_fields())
        if key in self._tracker:
            self._metrics.record_dedup_join()
        return await self._tracker.dedupe(key, lambda: self._execute(full_url, options))

    async def mutate_resource(
        self,
        method: str,
        path: str,
        body: Any = None,
        token: str | None = None,
    ) -> Result:
        """Send a state-changing request once.

        Mutations are not idempotent, so they are neither deduplicated nor
        retried; the dual-backend stores fall back locally instead.
        """
        options = RequestOptions(method=method, json=body, token=token)
        url = self.resolve(path)
        start = time.monotonic()
        try:
            data = await self._send(url, options, attempt=1)
            result = Result.ok(data)
        except RemoteRejectedError as exc:
            result = Result.fail(str(exc), status_code=exc.status_code)
        except TaskflowError as exc:
            result = Result.fail(str(exc))
        except Exception as exc:
            logger.exception(f"Unexpected error during {method} {url}")
            result = Result.fail(f"{type(exc).__name__}: {exc}")
        self._metrics.record_request(result.success, (time.monotonic() - start) * 1000)
        if not result:
            logger.debug(f"{method} {url} failed: {result.error}")
        return result

    async def _execute(self, url: str, options: RequestOptions) -> Result:
        start = time.monotonic()
        result = await with_retry(
            lambda n: self._send(url, options, n),
            config=self._retry,
            on_retry=lambda n, exc: self._metrics.record_retry(),
            sleep=self._sleep,
        )
        self._metrics.record_request(result.success, (time.monotonic() - start) * 1000)
        return result

    def _headers(self, options: RequestOptions) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **options.headers}
        if options.token:
            headers["Authorization"] = f"Bearer {options.token}"
        return headers

    async def _send(self, url: str, options: RequestOptions, attempt: int) -> Any:
        """One network exchange. Raises TransportError / RemoteRejectedError."""
        try:
            response = await self._get_client().request(
                options.method.upper(),
                url,
                headers=self._headers(options),
                json=options.json,
                params=options.params,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"Request failed (attempt {attempt}): {exc!r}")
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise RemoteRejectedError(_rejection_message(response), response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"Malformed response body from {url}: {exc}") from exc

    # === Cached catalog documents ===

    async def _get_cached(self, key: str) -> Any | None:
        if self._cache_enabled:
            cached = self._cache.get(key)
            if cached is not None:
                self._metrics.record_cache(hit=True)
                return cached
        self._metrics.record_cache(hit=False)

        data = await self._fetch_catalog(key)
        if data is not None and self._cache_enabled:
            self._cache.set(key, data)
        return data

    async def _fetch_catalog(self, key: str) -> Any | None:
        result = await self.fetch_resource(self._data_url + CATALOG_DOCUMENTS[key])
        if not result:
            logger.warning(f"Could not load {key}: {result.error}")
            return None
        try:
            _VALIDATORS[key](result.data)
        except ValueError as exc:
            logger.warning(f"Malformed {key} document: {exc}")
            return None
        return result.data

    async def refresh_catalog(self, key: str) -> bool:
        """Re-fetch one catalog document, replacing the cached copy on success.

        On failure the previous entry is left in place to expire normally.
        """
        data = await self._fetch_catalog(key)
        if data is None:
            return False
        self._cache.set(key, data)
        return True

    async def get_categories(self) -> Any | None:
        return await self._get_cached("categories")

    async def get_task_templates(self) -> dict[str, Any] | None:
        return await self._get_cached("taskTemplates")

    async def get_statistics(self) -> dict[str, Any] | None:
        return await self._get_cached("statistics")

    # === Catalog queries ===

    async def _templates(self) -> list[dict[str, Any]]:
        data = await self.get_task_templates()
        return data["templates"] if data else []

    async def get_templates_by_category(self, category: str) -> list[dict[str, Any]]:
        wanted = category.lower()
        return [t for t in await self._templates() if str(t.get("category", "")).lower() == wanted]

    async def get_templates_by_priority(self, priority: str) -> list[dict[str, Any]]:
        wanted = priority.lower()
        return [t for t in await self._templates() if str(t.get("priority", "")).lower() == wanted]

    async def search_templates(self, term: str) -> list[dict[str, Any]]:
        """Templates whose name, description or any tag contains ``term``."""
        needle = term.lower()
        matches = []
        for template in await self._templates():
            haystack = [template.get("name", ""), template.get("description", "")]
            haystack.extend(template.get("tags") or [])
            if any(needle in str(text).lower() for text in haystack):
                matches.append(template)
        return matches

    async def get_category_statistics(self, category: str) -> dict[str, Any] | None:
        stats = await self.get_statistics()
        by_category = (stats or {}).get("statistics", {}).get("byCategory")
        if not isinstance(by_category, list):
            return None
        wanted = category.lower()
        for entry in by_category:
            if isinstance(entry, dict) and str(entry.get("category", "")).lower() == wanted:
                return entry
        return None

    async def get_achievements(self) -> list[dict[str, Any]]:
        stats = await self.get_statistics()
        achievements = (stats or {}).get("statistics", {}).get("achievements")
        return achievements if isinstance(achievements, list) else []

    # === Cache management / diagnostics ===

    def clear_cache(self) -> None:
        self._cache.clear()

    def clear_cache_key(self, key: str) -> None:
        self._cache.invalidate(key)

    def cache_stats(self) -> dict[str, int]:
        return {**self._cache.stats(), "cacheTimeout": self._cache.timeout_ms}

    async def check_connectivity(self) -> bool:
        """True when the catalog location answers a HEAD request."""
        try:
            response = await self._get_client().head(self._data_url + CATALOG_DOCUMENTS["categories"])
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"Connectivity check failed: {exc!r}")
            return False
        return response.is_success

    def service_info(self) -> dict[str, Any]:
        return {
            "version": __version__,
            "cacheStats": self.cache_stats(),
            "config": {
                "baseUrl": self._base_url,
                "dataUrl": self._data_url,
                "cacheTimeout": self._cache.timeout_ms,
                "retryAttempts": self._retry.max_attempts,
                "retryDelay": self._retry.base_delay_ms,
            },
            "timestamp": utc_now_iso(),
        }
