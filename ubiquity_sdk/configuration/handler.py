"""
Configuration Handler.

The single entry point plugins and the kernel use to read configuration.

Flow:
    1. Organization configuration (owner/.ubiquity-os), imports resolved
    2. Repository configuration (owner/repo), imports resolved
    3. Merge: defaults <- organization <- repository
    4. Enrich every plugin entry from its manifest:
       - runsOn defaults to the manifest's "ubiquity:listeners"
       - skipBotEvents defaults to the manifest value, True without one
       - entries whose key is not a valid plugin identifier are dropped

Usage:
    handler = ConfigurationHandler(GitHubContentSource(GitHubConfig(token=token)))

    config = await handler.get_configuration(Location("acme", "demo"))
    for key, settings in config.plugins.items():
        print(key, settings.runs_on)

    # Inside a plugin: read only this plugin's `with` block
    settings = await handler.get_self_configuration(manifest, Location("acme", "demo"))
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import httpx

from ubiquity_sdk.utils.log import log_ok
from ubiquity_sdk.utils.urls import normalize_base_url

from .imports import ConfigurationResult, ImportResolver, merge_configurations
from .loader import CONFIG_ORG_REPO, DEFAULT_REQUEST_TIMEOUT, DocumentLoader
from .manifests import ManifestFetcher
from .schemas import (
    GithubPlugin,
    InvalidIdentifierError,
    Location,
    Manifest,
    PluginConfiguration,
    PluginLocator,
    PluginSettings,
    is_url_plugin,
    parse_plugin_reference,
)

if TYPE_CHECKING:
    from ubiquity_sdk.settings import SdkSettings
    from ubiquity_sdk.sources.base import ContentSource, ContentSourceResolver

logger = logging.getLogger(__name__)


class ConfigurationHandler:
    """
    Resolves the plugin configuration of a repository.

    The handler owns the manifest cache; keep one handler per process to
    share it between requests. Import resolution state is created per
    repository lookup and never shared.

    Example:
        handler = ConfigurationHandler(
            source,
            environment="development",
            source_resolver=StaticContentSourceResolver({"acme": acme_source}),
        )
        config = await handler.get_configuration(Location("acme", "demo"))
    """

    def __init__(
        self,
        content_source: ContentSource | None = None,
        *,
        source_resolver: ContentSourceResolver | None = None,
        environment: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        owns_content_source: bool = False,
    ):
        """
        Initialize handler.

        Args:
            content_source: Default source for configuration files and manifests
            source_resolver: Optional per-location source selection
            environment: Environment name selecting the configuration file
            http_client: Client used to fetch URL plugin manifests
            request_timeout: Timeout for one content request (seconds)
            logger: Logger to report through (module logger by default)
            owns_content_source: Close `content_source` when the handler is closed
        """
        self._content_source = content_source
        self._owns_content_source = owns_content_source
        self._source_resolver = source_resolver
        self._logger = logger or logging.getLogger(__name__)

        self._loader = DocumentLoader(
            environment=environment,
            request_timeout=request_timeout,
            logger=self._logger,
        )
        self._imports = ImportResolver(
            loader=self._loader,
            default_source=content_source,
            source_resolver=source_resolver,
            logger=self._logger,
        )
        self._manifests = ManifestFetcher(
            source_for=self._source_for_plugin,
            http_client=http_client,
            request_timeout=request_timeout,
            logger=self._logger,
        )

    @property
    def environment(self) -> str | None:
        return self._loader.environment

    @property
    def manifests(self) -> ManifestFetcher:
        return self._manifests

    # =========================================================================
    # Configuration
    # =========================================================================

    def default_configuration(self) -> PluginConfiguration:
        """Schema defaults, used when no location is known."""
        return PluginConfiguration()

    async def get_configuration(self, location: Location | None = None) -> PluginConfiguration:
        """
        Resolve the full configuration for a repository.

        Args:
            location: Repository to configure; None returns the defaults
                without any network activity

        Returns:
            PluginConfiguration whose plugins all have runs_on and
            skip_bot_events set
        """
        default_configuration = self.default_configuration()

        if location is None:
            self._logger.debug("[config] No location was provided, using the default configuration")
            return default_configuration

        owner, repo = location.owner, location.repo
        self._logger.debug(
            f"[config] Fetching configurations from the organization and repository | "
            f"org_repo={owner}/{CONFIG_ORG_REPO} | repo={owner}/{repo}"
        )

        org_result = await self.get_configuration_from_repo(owner, CONFIG_ORG_REPO)
        repo_result = await self.get_configuration_from_repo(owner, repo)

        merged = default_configuration.to_document()
        if org_result.config is not None:
            merged = merge_configurations(merged, org_result.config.to_document())
        if repo_result.config is not None:
            merged = merge_configurations(merged, repo_result.config.to_document())

        merged_configuration = PluginConfiguration.model_validate(merged)
        self._logger.debug(
            f"[config] Found plugins enabled | repo={owner}/{repo} | plugins={len(merged_configuration.plugins)}"
        )

        resolved = await self.enrich_plugins(merged_configuration)
        log_ok(self._logger, f"[config] Resolved configuration for {owner}/{repo} | plugins={len(resolved.plugins)}")
        return resolved

    async def get_configuration_from_repo(self, owner: str, repo: str) -> ConfigurationResult:
        """Configuration of one repository with its imports, no enrichment."""
        result = await self._imports.get_configuration_from_repo(owner, repo)
        if result.config is None and result.raw_data is None and not result.errors:
            self._logger.debug(f"[config] No configuration found for {owner}/{repo}")
        return result

    # =========================================================================
    # Enrichment
    # =========================================================================

    async def enrich_plugins(self, configuration: PluginConfiguration) -> PluginConfiguration:
        """Fill runsOn/skipBotEvents from manifests; drop invalid plugin keys."""
        resolved_plugins: dict[str, PluginSettings | None] = {}

        for plugin_key, plugin_settings in configuration.plugins.items():
            try:
                plugin = parse_plugin_reference(plugin_key)
            except InvalidIdentifierError as e:
                self._logger.error(f"[config] Invalid plugin identifier; skipping | plugin={plugin_key!r} | err={e}")
                continue

            manifest = await self.get_manifest(plugin)
            resolved_plugins[plugin_key] = self._enrich_settings(plugin_settings, manifest)

        return configuration.model_copy(update={"plugins": resolved_plugins, "imports": None})

    def _enrich_settings(self, settings: PluginSettings | None, manifest: Manifest | None) -> PluginSettings:
        settings = settings or PluginSettings()

        runs_on = list(settings.runs_on or [])
        if not runs_on and manifest is not None:
            runs_on = list(manifest.listeners or [])

        skip_bot_events = settings.skip_bot_events
        if skip_bot_events is None:
            skip_bot_events = True
            if manifest is not None and manifest.skip_bot_events is not None:
                skip_bot_events = manifest.skip_bot_events

        return settings.model_copy(
            update={
                "with_": dict(settings.with_ or {}),
                "runs_on": runs_on,
                "skip_bot_events": skip_bot_events,
            }
        )

    async def get_manifest(self, plugin: PluginLocator) -> Manifest | None:
        return await self._manifests.get_manifest(plugin)

    # =========================================================================
    # Self configuration
    # =========================================================================

    async def get_self_configuration(
        self,
        manifest: Manifest,
        location: Location | None = None,
    ) -> dict[str, Any] | None:
        """
        Find the `with` block configured for the plugin described by `manifest`.

        A plugin key matches when it equals the manifest's homepage_url
        (trailing slashes ignored), or when it names the repository in the
        manifest's short_name, with any workflow id and ref.

        Returns:
            The plugin's `with` mapping, or None when no entry matches
        """
        configuration = await self.get_configuration(location)

        for plugin_key, settings in configuration.plugins.items():
            if matches_manifest(plugin_key, manifest):
                return dict(settings.with_)

        self._logger.debug(f"[config] No configuration entry matches {manifest.short_name}")
        return None

    # =========================================================================
    # Sources
    # =========================================================================

    async def _source_for_plugin(self, plugin: GithubPlugin) -> ContentSource | None:
        if self._source_resolver is not None:
            source = await self._source_resolver.resolve(plugin.location)
            if source is not None:
                return source
        return self._content_source

    async def close(self) -> None:
        """Release the manifest HTTP client and, when owned, the content source."""
        await self._manifests.close()

        close_source = getattr(self._content_source, "close", None)
        if self._owns_content_source and callable(close_source):
            await close_source()

    async def __aenter__(self) -> ConfigurationHandler:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _short_name_pattern(short_name: str) -> re.Pattern[str]:
    base = short_name.split("@", 1)[0].strip()
    return re.compile(rf"^{re.escape(base)}(?::[\w.-]+)?(?:@[\w.-]+(?:/[\w.-]+)*)?$", re.ASCII | re.IGNORECASE)


def matches_manifest(plugin_key: str, manifest: Manifest) -> bool:
    """True when a `plugins` key refers to the plugin described by the manifest."""
    if is_url_plugin(plugin_key):
        if not manifest.homepage_url:
            return False
        return normalize_base_url(plugin_key) == normalize_base_url(manifest.homepage_url)

    return bool(_short_name_pattern(manifest.short_name).match(plugin_key))


def create_configuration_handler(
    settings: SdkSettings | None = None,
    *,
    source_resolver: ContentSourceResolver | None = None,
    http_client: httpx.AsyncClient | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> ConfigurationHandler:
    """
    Create a ConfigurationHandler reading from GitHub.

    Args:
        settings: SDK settings (read from the environment if None)
        source_resolver: Optional per-location source selection
        http_client: Client for URL plugin manifests
        logger: Logger to report through

    Returns:
        Configured ConfigurationHandler
    """
    from ubiquity_sdk.settings import get_settings
    from ubiquity_sdk.sources.github import GitHubConfig, GitHubContentSource

    settings = settings or get_settings()
    token = settings.github_token.get_secret_value()

    source = GitHubContentSource(
        GitHubConfig(
            token=token or None,
            base_url=settings.github_api_url,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
        )
    )

    # The handler timeout bounds a whole request, retries and backoff included
    request_timeout = settings.request_timeout * (settings.max_retries + 1) + settings.retry_delay * (
        2**settings.max_retries
    )

    return ConfigurationHandler(
        source,
        source_resolver=source_resolver,
        environment=settings.environment,
        http_client=http_client,
        request_timeout=request_timeout,
        logger=logger,
        owns_content_source=True,
    )
