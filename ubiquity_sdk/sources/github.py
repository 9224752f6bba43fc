"""
GitHub Content Source.

Async access to the GitHub "repository contents" REST endpoint, returning
raw file bodies.

Usage:
    async with GitHubContentSource(GitHubConfig(token="...")) as source:
        response = await source.get_content(
            "acme", "demo", ".github/.ubiquity-os.config.yml"
        )
        print(response.data)

Retry Strategy:
    - Retryable errors: timeouts, network errors, 429, 5xx
    - Non-retryable: 4xx (except 429), auth errors
    - Backoff: exponential with jitter

API Reference:
    https://docs.github.com/en/rest/repos/contents#get-repository-content
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from .base import (
    ContentAuthError,
    ContentNotFoundError,
    ContentRateLimitError,
    ContentResponse,
    ContentSourceError,
)

logger = logging.getLogger(__name__)

RAW_MEDIA_TYPE = "application/vnd.github.raw+json"
API_VERSION = "2022-11-28"


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    """Configuration for the GitHub content source."""

    token: str | None = None
    base_url: str = "https://api.github.com"
    timeout: float = 10.0

    # Rate limiting
    max_retries: int = 3
    retry_delay: float = 1.0


# =============================================================================
# Client
# =============================================================================


class GitHubContentSource:
    """
    ContentSource backed by the GitHub REST API.

    The client handles:
    - Authentication via bearer token
    - Raw media type negotiation
    - Error mapping to ContentSourceError subtypes
    - Retry with exponential backoff
    """

    name = "github"

    def __init__(
        self,
        config: GitHubConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the GitHub content source.

        Args:
            config: Connection configuration
            client: Optional pre-built httpx client (tests, shared pools)
        """
        self.config = config or GitHubConfig()
        self._client = client
        self._owns_client = client is None

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": RAW_MEDIA_TYPE, "X-GitHub-Api-Version": API_VERSION}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> ContentResponse:
        """
        Fetch the raw content of a repository file.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path inside the repository
            ref: Optional branch, tag or commit

        Returns:
            ContentResponse with the raw body and response headers

        Raises:
            ContentNotFoundError: The file (or repository) does not exist
            ContentSourceError: Any other failure, after retries
        """
        url = f"{self.config.base_url.rstrip('/')}/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}"
        params = {"ref": ref} if ref else None

        response = await self._get_with_retries(url, params)
        return ContentResponse(data=response.text, headers=dict(response.headers))

    async def _get_with_retries(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        attempt = 0
        while True:
            try:
                return await self._get(url, params)
            except ContentSourceError as e:
                if not e.retryable or attempt >= self.config.max_retries:
                    raise

                delay = self._retry_delay(attempt, e)
                attempt += 1
                logger.info(f"[{self.name}] Retrying {url} ({attempt}/{self.config.max_retries}) in {delay:.2f}s: {e}")
                await asyncio.sleep(delay)

    def _retry_delay(self, attempt: int, error: ContentSourceError) -> float:
        """Retry-After when GitHub sends one, else doubling delay with jitter (max 60s)."""
        if isinstance(error, ContentRateLimitError) and error.retry_after:
            return error.retry_after

        delay = self.config.retry_delay * (2**attempt)
        return min(delay * random.uniform(0.75, 1.25), 60.0)

    async def _get(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.get(url, params=params, headers=self._get_headers())
        except httpx.TimeoutException as e:
            raise ContentSourceError(f"Request timeout: {e}", self.name, retryable=True) from e
        except httpx.NetworkError as e:
            raise ContentSourceError(f"Network error: {e}", self.name, retryable=True) from e

        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        """
        Map an error response onto the ContentSourceError hierarchy.

        GitHub answers an exhausted quota with 403 and
        `x-ratelimit-remaining: 0`; that is a rate limit, not an auth failure.
        """
        if response.is_success:
            return

        status = response.status_code
        path = response.request.url.path

        if status == 429 or (status == 403 and response.headers.get("x-ratelimit-remaining") == "0"):
            retry_after = response.headers.get("Retry-After")
            raise ContentRateLimitError(
                f"Rate limit exceeded for {path}",
                self.name,
                status_code=status,
                retry_after=float(retry_after) if retry_after else None,
            )
        if status in (401, 403):
            raise ContentAuthError(f"Access denied to {path}: {response.text}", self.name, status_code=status)
        if status == 404:
            raise ContentNotFoundError(f"No content at {path}", self.name)

        raise ContentSourceError(
            f"GitHub returned {status} for {path}: {response.text}",
            self.name,
            status_code=status,
            retryable=status >= 500,
        )

    async def __aenter__(self) -> GitHubContentSource:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
