"""
Manifest Fetcher.

Retrieves, validates and caches plugin manifests.

Sources:
    - GithubPlugin: `manifest.json` at the root of the plugin repository,
      at the plugin's ref when one is pinned
    - UrlPlugin: `<base>/manifest.json` over HTTP

Caching:
    - A decoded manifest is cached for the lifetime of the fetcher, keyed by
      owner:repo[:ref] or by the resolved manifest URL
    - Concurrent requests for one key share a single in-flight task; the task
      is forgotten once it settles, success or failure
    - Failures are not cached, a later call retries

    The check-cache / check-in-flight / register sequence runs without an
    await in between, which makes it atomic on the event loop.

Failure Mode:
    A missing, unreachable or invalid manifest yields None. Schema mismatches
    raise ManifestValidationError inside the fetcher (decode_manifest) and are
    converted to None by get_manifest.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import httpx
from pydantic import ValidationError

from ubiquity_sdk.utils.urls import MANIFEST_FILE_NAME, manifest_url_for

from .schemas import GithubPlugin, Manifest, PluginLocator, UrlPlugin

if TYPE_CHECKING:
    from ubiquity_sdk.sources.base import ContentSource

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_TIMEOUT = 10.0  # seconds


class ManifestValidationError(ValueError):
    """Raised when a manifest does not match the manifest schema."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ManifestFetcher:
    """
    Fetches manifests for repository- and URL-hosted plugins.

    Example:
        fetcher = ManifestFetcher(source_for=lambda plugin: source)
        manifest = await fetcher.get_manifest(parse_plugin_identifier("acme/plugin"))
        if manifest:
            print(manifest.listeners)
    """

    def __init__(
        self,
        *,
        source_for: Callable[[GithubPlugin], Awaitable[ContentSource | None]],
        http_client: httpx.AsyncClient | None = None,
        request_timeout: float = DEFAULT_MANIFEST_TIMEOUT,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        """
        Initialize fetcher.

        Args:
            source_for: Returns the content source serving a plugin repository
            http_client: Client for URL plugins (created on demand if None)
            request_timeout: Timeout for one manifest request (seconds)
            logger: Logger to report through
        """
        self._source_for = source_for
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._request_timeout = request_timeout
        self._logger = logger or logging.getLogger(__name__)

        self._cache: dict[str, Manifest] = {}
        self._in_flight: dict[str, asyncio.Task[Manifest | None]] = {}

    # =========================================================================
    # Public API
    # =========================================================================

    async def get_manifest(self, plugin: PluginLocator) -> Manifest | None:
        """
        Get the manifest of a plugin.

        Returns:
            The validated manifest, or None if it could not be obtained
        """
        if isinstance(plugin, UrlPlugin):
            key = manifest_url_for(plugin.url)
            fetch = lambda: self._fetch_url_manifest(key)  # noqa: E731
        else:
            key = plugin.manifest_key
            fetch = lambda: self._fetch_repository_manifest(plugin)  # noqa: E731

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_cache(key, fetch))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget_in_flight(key, done))
        else:
            self._logger.debug(f"[manifest] Joining in-flight request for {key}")

        return await asyncio.shield(task)

    def decode_manifest(self, data: Any) -> Manifest:
        """
        Validate raw manifest data.

        Raises:
            ManifestValidationError: If the data does not match the schema
        """
        try:
            return Manifest.model_validate(data)
        except ValidationError as e:
            errors = e.errors(include_url=False)
            for error in errors:
                location = ".".join(str(part) for part in error["loc"]) or "<root>"
                self._logger.error(f"[manifest] Manifest validation error at {location}: {error['msg']}")
            raise ManifestValidationError("Manifest is invalid.", errors) from e

    def clear(self) -> None:
        """Forget every cached manifest and every in-flight request."""
        self._cache.clear()
        self._in_flight.clear()

    @property
    def cached_keys(self) -> list[str]:
        return list(self._cache)

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # Fetching
    # =========================================================================

    def _forget_in_flight(self, key: str, task: asyncio.Task) -> None:
        # clear() may have replaced the entry with a newer task
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch_and_cache(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Manifest | None:
        data = await fetch()
        if data is None:
            return None

        try:
            manifest = self.decode_manifest(data)
        except ManifestValidationError as e:
            self._logger.error(f"[manifest] Ignoring invalid manifest for {key}: {e}")
            return None

        self._cache[key] = manifest
        return manifest

    async def _fetch_repository_manifest(self, plugin: GithubPlugin) -> Any:
        source = await self._source_for(plugin)
        if source is None:
            self._logger.error(f"[manifest] No content source available for {plugin.location}")
            return None

        try:
            response = await asyncio.wait_for(
                source.get_content(plugin.owner, plugin.repo, MANIFEST_FILE_NAME, plugin.ref),
                timeout=self._request_timeout,
            )
        except asyncio.TimeoutError:
            self._logger.warning(f"[manifest] Timed out fetching the manifest of {plugin}")
            return None
        except Exception as e:
            self._logger.error(f"[manifest] Could not find a manifest for {plugin}: {e}")
            return None

        try:
            return json.loads(response.data)
        except (TypeError, ValueError) as e:
            self._logger.error(f"[manifest] Manifest of {plugin} is not valid JSON: {e}")
            return None

    async def _fetch_url_manifest(self, manifest_url: str) -> Any:
        client = await self._get_http_client()
        try:
            response = await client.get(manifest_url, timeout=self._request_timeout)
        except httpx.HTTPError as e:
            self._logger.error(f"[manifest] Could not fetch the manifest at {manifest_url}: {e}")
            return None

        if not response.is_success:
            self._logger.error(
                f"[manifest] Could not find a manifest at {manifest_url} (status={response.status_code})"
            )
            return None

        try:
            return response.json()
        except ValueError as e:
            self._logger.error(f"[manifest] Manifest at {manifest_url} is not valid JSON: {e}")
            return None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._request_timeout)
            self._owns_http_client = True
        return self._http_client
