"""
Plugin Configuration Resolution.

Discovers, downloads, validates, merges and enriches the YAML configuration
that decides which plugins run for which webhook events.

Components:
    - Identifier parsing and schemas (schemas)
    - DocumentLoader: candidate paths, download, YAML, validation (loader)
    - ImportResolver: recursive `imports` with cycle/depth guards (imports)
    - ManifestFetcher: cached, de-duplicated manifest retrieval (manifests)
    - ConfigurationHandler: the facade (handler)
"""

from .handler import ConfigurationHandler, create_configuration_handler, matches_manifest
from .imports import (
    MAX_IMPORT_DEPTH,
    ConfigurationResult,
    ImportResolver,
    ImportState,
    merge_configurations,
)
from .loader import (
    CONFIG_DEV_FULL_PATH,
    CONFIG_ORG_REPO,
    CONFIG_PROD_FULL_PATH,
    DecodeResult,
    DocumentLoader,
    YamlResult,
    config_path_candidates,
    parse_yaml,
    validate_and_decode,
)
from .manifests import ManifestFetcher, ManifestValidationError
from .schemas import (
    DEFAULT_WORKFLOW_ID,
    GithubPlugin,
    InvalidIdentifierError,
    Location,
    Manifest,
    PluginConfiguration,
    PluginLocator,
    PluginSettings,
    UrlPlugin,
    parse_location,
    parse_plugin_identifier,
    parse_plugin_reference,
)

__all__ = [
    # Handler
    "ConfigurationHandler",
    "create_configuration_handler",
    "matches_manifest",
    # Imports
    "MAX_IMPORT_DEPTH",
    "ConfigurationResult",
    "ImportResolver",
    "ImportState",
    "merge_configurations",
    # Loader
    "CONFIG_DEV_FULL_PATH",
    "CONFIG_ORG_REPO",
    "CONFIG_PROD_FULL_PATH",
    "DecodeResult",
    "DocumentLoader",
    "YamlResult",
    "config_path_candidates",
    "parse_yaml",
    "validate_and_decode",
    # Manifests
    "ManifestFetcher",
    "ManifestValidationError",
    # Schemas
    "DEFAULT_WORKFLOW_ID",
    "GithubPlugin",
    "InvalidIdentifierError",
    "Location",
    "Manifest",
    "PluginConfiguration",
    "PluginLocator",
    "PluginSettings",
    "UrlPlugin",
    "parse_location",
    "parse_plugin_identifier",
    "parse_plugin_reference",
]
