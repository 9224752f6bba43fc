"""
Content sources.

Where configuration files and manifests come from: GitHub in production,
memory or a local directory in tests and development.
"""

from .base import (
    ContentAuthError,
    ContentNotFoundError,
    ContentRateLimitError,
    ContentResponse,
    ContentSource,
    ContentSourceError,
    ContentSourceResolver,
    is_not_found,
)
from .github import GitHubConfig, GitHubContentSource
from .memory import LocalContentSource, MemoryContentSource
from .resolvers import StaticContentSourceResolver

__all__ = [
    "ContentAuthError",
    "ContentNotFoundError",
    "ContentRateLimitError",
    "ContentResponse",
    "ContentSource",
    "ContentSourceError",
    "ContentSourceResolver",
    "GitHubConfig",
    "GitHubContentSource",
    "LocalContentSource",
    "MemoryContentSource",
    "StaticContentSourceResolver",
    "is_not_found",
]
