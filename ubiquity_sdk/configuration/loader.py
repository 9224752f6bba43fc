"""
Configuration Document Loader.

Downloads one configuration file for a repository, parses it as YAML and
validates it against a pydantic schema.

Candidate Paths:
    production (default)  .github/.ubiquity-os.config.yml
    development           .github/.ubiquity-os.config.dev.yml, then production
    <name>                .github/.ubiquity-os.config.<name>.yml, then production

    Environment names are case-insensitive: they are trimmed and lowercased
    before matching, so "Staging" reads .ubiquity-os.config.staging.yml.
    They are then sanitized to [A-Za-z0-9_-]; a name that sanitizes to
    nothing uses the dev path so a broken name never silently selects a new
    file.

Failure Mode (Graceful Degradation):
    - 404 on a candidate: expected, logged at debug, next candidate
    - Any other failure (5xx, network, timeout): logged, next candidate
    - Malformed YAML / schema mismatch: logged, document treated as absent
    Nothing in this module raises to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from ubiquity_sdk.sources.base import ContentSource, error_status, is_not_found

logger = logging.getLogger(__name__)

CONFIG_PROD_FULL_PATH = ".github/.ubiquity-os.config.yml"
CONFIG_DEV_FULL_PATH = ".github/.ubiquity-os.config.dev.yml"
CONFIG_ORG_REPO = ".ubiquity-os"

PRODUCTION_ENVIRONMENTS = frozenset({"", "production", "prod"})
DEVELOPMENT_ENVIRONMENTS = frozenset({"development", "dev"})

DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds

ModelT = TypeVar("ModelT", bound=BaseModel)


def sanitize_environment(environment: str) -> str:
    """Keep only characters that are safe inside a file name."""
    return re.sub(r"[^A-Za-z0-9_-]", "", environment)


def config_path_candidates(environment: str | None) -> list[str]:
    """
    Build the ordered list of configuration paths for an environment.

    Args:
        environment: Environment name (None means production); matched and
            sanitized after trimming and lowercasing

    Returns:
        Paths to try, first match wins
    """
    name = (environment or "").strip().lower()

    if name in PRODUCTION_ENVIRONMENTS:
        return [CONFIG_PROD_FULL_PATH]

    if name in DEVELOPMENT_ENVIRONMENTS:
        return [CONFIG_DEV_FULL_PATH, CONFIG_PROD_FULL_PATH]

    suffix = sanitize_environment(name)
    if not suffix:
        logger.warning(f"[config] Invalid environment name {environment!r}, using the dev configuration path")
        return [CONFIG_DEV_FULL_PATH, CONFIG_PROD_FULL_PATH]

    return [f".github/.ubiquity-os.config.{suffix}.yml", CONFIG_PROD_FULL_PATH]


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class YamlResult:
    """Outcome of parsing a YAML document."""

    document: Any = None
    errors: list[Exception] | None = None


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of validating a document against a schema."""

    value: Any = None
    errors: list[Any] | None = None


# =============================================================================
# Parsing and validation
# =============================================================================


def parse_yaml(data: str | None, *, log: logging.Logger | logging.LoggerAdapter | None = None) -> YamlResult:
    """
    Parse raw text into a document tree.

    Returns:
        (None, None) for empty input, (None, [error]) for a syntax error,
        (document, None) otherwise. Never raises.
    """
    log = log or logger
    if not data:
        log.debug("[config] No YAML data to parse")
        return YamlResult()

    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as e:
        log.error(f"[config] Error parsing YAML: {e}")
        return YamlResult(errors=[e])

    return YamlResult(document=document)


def validate_and_decode(
    model: type[ModelT],
    document: Any,
    *,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> DecodeResult:
    """
    Apply a schema to a parsed document.

    Defaults are filled by the model. Every validation error is logged
    individually; if the document cannot be decoded the result value is None
    and callers skip that source.
    """
    log = log or logger
    try:
        value = model.model_validate(document)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        for error in errors:
            location = ".".join(str(part) for part in error["loc"]) or "<root>"
            log.error(f"[config] Validation error at {location}: {error['msg']}")
        return DecodeResult(errors=errors)

    return DecodeResult(value=value)


# =============================================================================
# Loader
# =============================================================================


class DocumentLoader:
    """
    Downloads configuration files through a content source.

    Usage:
        loader = DocumentLoader(environment="development")
        raw = await loader.download("acme", "demo", source)
    """

    def __init__(
        self,
        *,
        environment: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        """
        Initialize loader.

        Args:
            environment: Environment name selecting the candidate paths
            request_timeout: Timeout for one content request (seconds)
            logger: Logger to report through (module logger by default)
        """
        self._environment = environment
        self._request_timeout = request_timeout
        self._logger = logger or logging.getLogger(__name__)

    @property
    def environment(self) -> str | None:
        return self._environment

    @property
    def candidate_paths(self) -> list[str]:
        return config_path_candidates(self._environment)

    async def download(self, owner: str, repo: str, source: ContentSource) -> str | None:
        """
        Download the first existing configuration file of a repository.

        Returns:
            Raw file text, or None if every candidate failed
        """
        if not owner or not repo:
            self._logger.error("[config] Repo or owner is not defined, cannot download the requested file")
            return None

        for file_path in self.candidate_paths:
            self._logger.debug(f"[config] Attempting to fetch {owner}/{repo}/{file_path}")
            try:
                response = await asyncio.wait_for(
                    source.get_content(owner, repo, file_path),
                    timeout=self._request_timeout,
                )
            except asyncio.TimeoutError:
                self._logger.warning(
                    f"[config] Timed out after {self._request_timeout}s fetching {owner}/{repo}/{file_path}"
                )
                continue
            except Exception as e:
                if is_not_found(e):
                    self._logger.debug(f"[config] No configuration file at {owner}/{repo}/{file_path}")
                else:
                    status = error_status(e)
                    level = logging.WARNING if status is None or status >= 500 else logging.ERROR
                    self._logger.log(
                        level,
                        f"[config] Failed to download {owner}/{repo}/{file_path}: {e}",
                    )
                continue

            remaining = response.headers.get("x-ratelimit-remaining")
            self._logger.debug(
                f"[config] Configuration file found | "
                f"repo={owner}/{repo} | path={file_path} | rate_limit_remaining={remaining}"
            )
            return response.data

        return None

    async def load(self, owner: str, repo: str, source: ContentSource) -> tuple[str | None, YamlResult]:
        """Download and parse in one step."""
        raw = await self.download(owner, repo, source)
        if raw is None:
            self._logger.debug(f"[config] No raw configuration data for {owner}/{repo}")
            return None, YamlResult()
        return raw, parse_yaml(raw, log=self._logger)
