"""
Import Resolution.

A configuration document may import other repositories' configuration:

    imports:
      - acme/shared-config
      - acme/security-defaults
    plugins:
      ...

Imported documents are resolved recursively, folded left to right and the
importing document is merged on top (local overrides imported).

Resolution State:
    Every top-level call gets a fresh ImportState holding
    - cache: location key -> resolved configuration (None for failures)
    - in_flight: location keys currently being resolved (cycle detection)
    - content_source_by_location: memoized source lookups
    The state is never shared across repositories or calls.

Guarantees:
    - A location is fetched at most once per run (failures are cached too)
    - Cycles (including self-imports) resolve to None for the repeated
      location instead of recursing
    - Chains deeper than MAX_IMPORT_DEPTH are truncated
    - Imports are resolved sequentially, in declaration order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from .loader import DocumentLoader, validate_and_decode
from .schemas import InvalidIdentifierError, Location, PluginConfiguration, parse_location

if TYPE_CHECKING:
    from ubiquity_sdk.sources.base import ContentSource, ContentSourceResolver

logger = logging.getLogger(__name__)

MAX_IMPORT_DEPTH = 6


def merge_configurations(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge two configuration documents, `override` winning.

    Top-level keys are merged shallowly. `plugins` is merged per plugin key,
    so entries present on only one side pass through unchanged. Neither input
    is modified. The merge is right-biased, apply it in a fixed order
    (imports then local, organization then repository).
    """
    merged = {**base, **override}

    base_plugins = base.get("plugins")
    override_plugins = override.get("plugins")
    if isinstance(base_plugins, Mapping) and isinstance(override_plugins, Mapping):
        merged["plugins"] = {**base_plugins, **override_plugins}
    elif isinstance(base_plugins, Mapping) and override_plugins is None:
        merged["plugins"] = dict(base_plugins)

    return merged


@dataclass(frozen=True, slots=True)
class ConfigurationResult:
    """Configuration of one repository, with what went wrong loading it."""

    config: PluginConfiguration | None = None
    errors: list[Any] | None = None
    raw_data: str | None = None


@dataclass
class ImportState:
    """Per-run import resolution state."""

    cache: dict[str, PluginConfiguration | None] = field(default_factory=dict)
    in_flight: set[str] = field(default_factory=set)
    content_source_by_location: dict[str, ContentSource | None] = field(default_factory=dict)


class ImportResolver:
    """
    Resolves a repository's configuration together with its imports.

    Example:
        resolver = ImportResolver(loader=DocumentLoader(), default_source=source)
        result = await resolver.get_configuration_from_repo("acme", "demo")
        if result.config:
            print(result.config.plugins)
    """

    def __init__(
        self,
        *,
        loader: DocumentLoader,
        default_source: ContentSource | None = None,
        source_resolver: ContentSourceResolver | None = None,
        max_depth: int = MAX_IMPORT_DEPTH,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._loader = loader
        self._default_source = default_source
        self._source_resolver = source_resolver
        self._max_depth = max_depth
        self._logger = logger or logging.getLogger(__name__)

    async def get_configuration_from_repo(self, owner: str, repo: str) -> ConfigurationResult:
        """Resolve one repository's configuration on a fresh ImportState."""
        return await self.resolve(Location(owner, repo), ImportState(), depth=0)

    async def resolve(self, location: Location, state: ImportState, depth: int) -> ConfigurationResult:
        """
        Resolve the configuration at `location`.

        Args:
            location: Repository to resolve
            state: Run-scoped state shared by the whole import tree
            depth: Import depth, 0 for the repository being configured

        Returns:
            ConfigurationResult; `config` is None for missing, invalid,
            cyclic or too deep locations
        """
        key = location.key

        if key in state.cache:
            self._logger.debug(f"[imports] Cache hit for {location}")
            return ConfigurationResult(config=state.cache[key])

        if key in state.in_flight:
            self._logger.warning(f"[imports] Import cycle detected at {location}, skipping")
            return ConfigurationResult()

        if depth > self._max_depth:
            self._logger.warning(
                f"[imports] Import depth limit ({self._max_depth}) exceeded at {location}, skipping"
            )
            return ConfigurationResult()

        state.in_flight.add(key)
        try:
            result = await self._load_and_merge(location, state, depth)
        finally:
            state.in_flight.discard(key)

        state.cache[key] = result.config
        return result

    async def _load_and_merge(self, location: Location, state: ImportState, depth: int) -> ConfigurationResult:
        source = await self._content_source_for(location, state)
        if source is None:
            self._logger.error(f"[imports] No content source available for {location}")
            return ConfigurationResult()

        raw, parsed = await self._loader.load(location.owner, location.repo, source)
        if parsed.errors:
            return ConfigurationResult(errors=parsed.errors, raw_data=raw)

        document = parsed.document
        if document is None:
            return ConfigurationResult(raw_data=raw)

        if not isinstance(document, Mapping):
            self._logger.error(
                f"[imports] Configuration of {location} is a {type(document).__name__}, expected a mapping"
            )
            return ConfigurationResult(errors=[TypeError("configuration must be a mapping")], raw_data=raw)

        document = dict(document)
        import_locations = self._extract_imports(document.pop("imports", None), location)

        imported: list[PluginConfiguration] = []
        for import_location in import_locations:
            self._logger.debug(f"[imports] {location} imports {import_location} (depth={depth + 1})")
            child = await self.resolve(import_location, state, depth + 1)
            if child.config is not None:
                imported.append(child.config)

        merged: dict[str, Any] = {}
        for config in imported:
            merged = merge_configurations(merged, config.to_document())
        merged = merge_configurations(merged, document)

        decoded = validate_and_decode(PluginConfiguration, merged, log=self._logger)
        if decoded.value is None:
            self._logger.error(f"[imports] Error decoding configuration of {location}; will ignore")
            return ConfigurationResult(errors=decoded.errors, raw_data=raw)

        self._logger.debug(
            f"[imports] Resolved {location} | imports={len(imported)} | plugins={len(decoded.value.plugins)}"
        )
        return ConfigurationResult(config=decoded.value, raw_data=raw)

    def _extract_imports(self, value: Any, location: Location) -> list[Location]:
        """Parse `imports`, dropping invalid entries and duplicates (first wins)."""
        if value is None:
            return []

        if not isinstance(value, list):
            self._logger.warning(f"[imports] 'imports' of {location} is not a list, ignoring it")
            return []

        locations: list[Location] = []
        seen: set[str] = set()
        for entry in value:
            try:
                import_location = parse_location(entry)
            except InvalidIdentifierError:
                self._logger.warning(f"[imports] Invalid import {entry!r} in {location}, skipping")
                continue

            if import_location.key in seen:
                continue
            seen.add(import_location.key)
            locations.append(import_location)

        return locations

    async def _content_source_for(self, location: Location, state: ImportState) -> ContentSource | None:
        key = location.key
        if key in state.content_source_by_location:
            return state.content_source_by_location[key]

        source = None
        if self._source_resolver is not None:
            source = await self._source_resolver.resolve(location)
        if source is None:
            source = self._default_source

        state.content_source_by_location[key] = source
        return source
