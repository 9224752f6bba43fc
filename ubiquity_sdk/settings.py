"""
SDK Settings.

Pydantic model for the environment-driven settings of the configuration
engine.

Security:
    The GitHub token uses SecretStr to prevent accidental logging.
    Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr

ENV_PREFIX = "UBIQUITY_"


class SdkSettings(BaseModel):
    """
    Settings for the configuration engine.

    Environment variables use the `UBIQUITY_` prefix, e.g.
    `UBIQUITY_ENVIRONMENT=development`.
    """

    # Which configuration file variant to read
    environment: str = "production"

    # GitHub
    github_api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL")
    github_token: SecretStr = Field(default=SecretStr(""), description="Token used to read repository content")

    # Network
    request_timeout: float = Field(default=10.0, gt=0, description="Timeout for one content request (seconds)")
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)

    # Observability
    log_level: str = "INFO"

    model_config = {"frozen": True}


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


@lru_cache()
def get_settings() -> SdkSettings:
    """
    Get SDK settings from the environment.

    Uses lru_cache for singleton pattern; call `get_settings.cache_clear()`
    after changing the environment.
    """
    return SdkSettings(
        environment=_env("ENVIRONMENT", "production"),
        github_api_url=_env("GITHUB_API_URL", "https://api.github.com"),
        github_token=SecretStr(_env("GITHUB_TOKEN", "")),
        request_timeout=float(_env("REQUEST_TIMEOUT", "10")),
        max_retries=int(_env("MAX_RETRIES", "3")),
        retry_delay=float(_env("RETRY_DELAY", "1")),
        log_level=_env("LOG_LEVEL", "INFO"),
    )
