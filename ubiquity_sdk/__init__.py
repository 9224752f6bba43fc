"""
Ubiquity SDK - plugin configuration for the UbiquityOS kernel.

Plugins react to repository webhook events. Which plugins run, for which
events and with which inputs is decided by YAML configuration stored in the
organization (`owner/.ubiquity-os`) and in each repository, optionally
importing configuration from other repositories.

Quick Start:
    >>> from ubiquity_sdk import ConfigurationHandler, Location
    >>> from ubiquity_sdk.sources import GitHubConfig, GitHubContentSource
    >>>
    >>> handler = ConfigurationHandler(GitHubContentSource(GitHubConfig(token="...")))
    >>> config = await handler.get_configuration(Location("acme", "demo"))
    >>> config.plugins["ubiquity-os/daemon-pricing"].runs_on
    ['issues.labeled', 'issues.unlabeled']
"""

__version__ = "0.1.0"
__license__ = "MIT"

from ubiquity_sdk.configuration import (
    ConfigurationHandler,
    GithubPlugin,
    InvalidIdentifierError,
    Location,
    Manifest,
    PluginConfiguration,
    PluginSettings,
    UrlPlugin,
    create_configuration_handler,
    parse_plugin_identifier,
)
from ubiquity_sdk.settings import SdkSettings, get_settings

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "ConfigurationHandler",
    "create_configuration_handler",
    "GithubPlugin",
    "UrlPlugin",
    "Location",
    "InvalidIdentifierError",
    "parse_plugin_identifier",
    # Schemas
    "Manifest",
    "PluginConfiguration",
    "PluginSettings",
    # Settings
    "SdkSettings",
    "get_settings",
]
