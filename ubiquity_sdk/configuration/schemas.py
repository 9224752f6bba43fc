"""
Configuration Schemas.

Pydantic models for plugin configuration documents and plugin manifests,
plus the parsers for plugin identifiers and repository locations.

Document Format (.github/.ubiquity-os.config.yml):
    imports:
      - acme/shared-config
    plugins:
      ubiquity-os/example-plugin:compute.yml@v1.2.0:
        with:
          level: 1
        runsOn:
          - issues.opened
        skipBotEvents: false
      https://plugin.example.com:          # worker-hosted plugin
      acme/other-plugin:                   # null: enabled with defaults

Field names follow the YAML/JSON spelling through aliases; Python code uses
the snake_case attributes (`with_`, `runs_on`, `skip_bot_events`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

DEFAULT_WORKFLOW_ID = "compute.yml"

PLUGIN_IDENTIFIER_PATTERN = re.compile(
    r"^([\w.-]+)/([\w.-]+)(?::([\w.-]+))?(?:@([\w.-]+(?:/[\w.-]+)*))?$",
    re.ASCII,
)
LOCATION_PATTERN = re.compile(r"^([\w.-]+)/([\w.-]+)$", re.ASCII)
URL_PLUGIN_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

# Webhook event names: "issues", "issues.opened", "pull_request_review.submitted"
WebhookEventName = Annotated[str, StringConstraints(pattern=r"^[a-z_]+(\.[a-z_]+)?$")]


# =============================================================================
# Errors
# =============================================================================


class InvalidIdentifierError(ValueError):
    """Raised when a plugin identifier or location does not match its grammar."""

    def __init__(self, value: Any, expected: str = "owner/repo[:workflowId][@ref]"):
        super().__init__(f"Invalid plugin identifier: {value!r} (expected {expected})")
        self.value = value


# =============================================================================
# Locators
# =============================================================================


@dataclass(frozen=True, slots=True)
class Location:
    """A repository; the unit of identity for import caching and cycles."""

    owner: str
    repo: str

    @property
    def key(self) -> str:
        """Case-insensitive identity, GitHub names are not case sensitive."""
        return f"{self.owner}/{self.repo}".lower()

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True, slots=True)
class GithubPlugin:
    """A plugin hosted in a repository and run as a workflow."""

    owner: str
    repo: str
    workflow_id: str = DEFAULT_WORKFLOW_ID
    ref: str | None = None

    @property
    def location(self) -> Location:
        return Location(self.owner, self.repo)

    @property
    def manifest_key(self) -> str:
        if self.ref:
            return f"{self.owner}:{self.repo}:{self.ref}"
        return f"{self.owner}:{self.repo}"

    def __str__(self) -> str:
        value = f"{self.owner}/{self.repo}:{self.workflow_id}"
        return f"{value}@{self.ref}" if self.ref else value


@dataclass(frozen=True, slots=True)
class UrlPlugin:
    """A plugin served over HTTP (e.g. a Cloudflare worker)."""

    url: str

    def __str__(self) -> str:
        return self.url


PluginLocator = GithubPlugin | UrlPlugin


def parse_plugin_identifier(value: str) -> GithubPlugin:
    """
    Parse a plugin identifier string into its parts.

    Args:
        value: Identifier in the form "owner/repo[:workflowId][@ref]"

    Returns:
        GithubPlugin; workflow_id defaults to "compute.yml"

    Raises:
        InvalidIdentifierError: If the string does not match the grammar

    Examples:
        >>> parse_plugin_identifier("ubiquity-os/plugin-name")
        GithubPlugin(owner='ubiquity-os', repo='plugin-name', workflow_id='compute.yml', ref=None)
        >>> parse_plugin_identifier("ubiquity-os/plugin-name:custom.yml@release/v1")
        GithubPlugin(owner='ubiquity-os', repo='plugin-name', workflow_id='custom.yml', ref='release/v1')
    """
    if not isinstance(value, str):
        raise InvalidIdentifierError(value)

    match = PLUGIN_IDENTIFIER_PATTERN.match(value)
    if not match:
        raise InvalidIdentifierError(value)

    owner, repo, workflow_id, ref = match.groups()
    return GithubPlugin(
        owner=owner,
        repo=repo,
        workflow_id=workflow_id or DEFAULT_WORKFLOW_ID,
        ref=ref or None,
    )


def is_url_plugin(value: str) -> bool:
    return isinstance(value, str) and bool(URL_PLUGIN_PATTERN.match(value))


def parse_plugin_reference(value: str) -> PluginLocator:
    """Parse a `plugins` key: a bare http(s) URL or a repository identifier."""
    if is_url_plugin(value):
        return UrlPlugin(url=value)
    return parse_plugin_identifier(value)


def parse_location(value: str) -> Location:
    """Parse an `imports` entry ("owner/repo")."""
    match = LOCATION_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidIdentifierError(value, expected="owner/repo")
    return Location(owner=match.group(1), repo=match.group(2))


# =============================================================================
# Configuration documents
# =============================================================================


class PluginSettings(BaseModel):
    """
    Settings of one plugin entry.

    A `null` entry in YAML is kept as None in PluginConfiguration.plugins and
    means "enabled with defaults".
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    with_: dict[str, Any] = Field(default_factory=dict, alias="with", description="Plugin inputs")
    runs_on: list[WebhookEventName] | None = Field(
        default=None, alias="runsOn", description="Webhook events that trigger the plugin"
    )
    skip_bot_events: bool | None = Field(
        default=None, alias="skipBotEvents", description="Ignore events sent by bots"
    )

    @field_validator("with_", mode="before")
    @classmethod
    def _null_with_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class PluginConfiguration(BaseModel):
    """
    A configuration document.

    Unknown top-level keys are preserved verbatim. `imports` only exists
    while imports are being resolved and is never serialized.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    imports: list[str] | None = Field(default=None, exclude=True)
    plugins: dict[str, PluginSettings | None] = Field(default_factory=dict)

    @field_validator("plugins", mode="before")
    @classmethod
    def _null_plugins_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_document(self) -> dict[str, Any]:
        """Serialize back to the YAML/JSON shape (aliases, no imports)."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Manifest
# =============================================================================


class Manifest(BaseModel):
    """
    A plugin manifest (manifest.json).

    Describes what a plugin listens to and which commands it provides.
    Read-only once validated.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    name: str = Field(..., min_length=1)
    short_name: str = Field(..., min_length=1, description="owner/repo@version")
    description: str = ""
    homepage_url: str | None = None
    listeners: list[WebhookEventName] | None = Field(default=None, alias="ubiquity:listeners")
    skip_bot_events: bool | None = Field(default=None, alias="skipBotEvents")
    commands: dict[str, Any] | None = None
    configuration: dict[str, Any] | None = None
