"""
Base abstractions for content sources.

A content source retrieves raw file content from a repository. The
configuration engine only needs one operation from it:

    async get_content(owner, repo, path, ref=None) -> ContentResponse

Not-found Contract:
    A missing file MUST be signalled by raising an error whose `status_code`
    (or `status`) is 404. Any other exception is treated as a transport
    failure: it is logged and the caller moves on to its next candidate.

Multi-Tenancy:
    A ContentSourceResolver picks a different (differently authenticated)
    source per location. When no resolver is configured, or it returns None,
    the handler's default source is used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ubiquity_sdk.configuration.schemas import Location


# =============================================================================
# Exceptions
# =============================================================================


class ContentSourceError(Exception):
    """A content source could not return a file."""

    def __init__(
        self,
        message: str,
        source: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.source = source
        self.status_code = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        text = f"[{self.source}] {self.args[0]}"
        return f"{text} (status={self.status_code})" if self.status_code else text


class ContentNotFoundError(ContentSourceError):
    """The file, or the repository holding it, does not exist."""

    def __init__(self, message: str, source: str, *, status_code: int = 404):
        super().__init__(message, source, status_code=status_code)


class ContentAuthError(ContentSourceError):
    """The source rejected the credentials (401/403)."""


class ContentRateLimitError(ContentSourceError):
    """The API quota is exhausted; `retry_after` is in seconds when known."""

    def __init__(self, message: str, source: str, *, status_code: int | None = None, retry_after: float | None = None):
        super().__init__(message, source, status_code=status_code, retryable=True)
        self.retry_after = retry_after


def error_status(error: BaseException) -> int | None:
    """Return the HTTP status carried by an error, if any."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def is_not_found(error: BaseException) -> bool:
    """True when the error signals a missing file."""
    return error_status(error) == 404


# =============================================================================
# Protocols
# =============================================================================


@dataclass(frozen=True, slots=True)
class ContentResponse:
    """Raw file content plus the response headers."""

    data: str
    headers: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class ContentSource(Protocol):
    """Retrieves raw file content from a repository."""

    async def get_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> ContentResponse:
        """Return the content of `path`, raising a 404 error when absent."""
        ...


@runtime_checkable
class ContentSourceResolver(Protocol):
    """Selects the content source to use for a given location."""

    async def resolve(self, location: Location) -> ContentSource | None:
        """Return a source for the location, or None to use the default."""
        ...
