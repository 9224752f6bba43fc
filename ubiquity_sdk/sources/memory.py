"""
In-memory and file-based content sources.

Design Principle:
    Start simple, scale as needed.
    - Production: GitHubContentSource
    - Development: LocalContentSource (a directory of checked-out repos)
    - Testing: MemoryContentSource (in-memory)

Usage:
    source = MemoryContentSource()
    source.add_file("acme", "demo", ".github/.ubiquity-os.config.yml", "plugins: {}")

    source = LocalContentSource("repos/")
    # reads repos/acme/demo/.github/.ubiquity-os.config.yml
"""

from __future__ import annotations

import logging
from pathlib import Path

from .base import ContentNotFoundError, ContentResponse, ContentSourceError

logger = logging.getLogger(__name__)


class MemoryContentSource:
    """
    In-memory content source for testing.

    Files are keyed by (owner, repo, path, ref). A file stored without a ref
    is served for any ref. Every call is recorded in `calls`, which makes
    request de-duplication observable in tests.
    """

    name = "memory"

    def __init__(self, files: dict[tuple[str, str, str], str] | None = None):
        self._files: dict[tuple[str, str, str, str | None], str] = {}
        self._failures: dict[tuple[str, str, str], Exception] = {}
        self.calls: list[tuple[str, str, str, str | None]] = []

        for (owner, repo, path), data in (files or {}).items():
            self.add_file(owner, repo, path, data)

    def add_file(
        self,
        owner: str,
        repo: str,
        path: str,
        data: str,
        *,
        ref: str | None = None,
    ) -> None:
        """Store a file."""
        self._files[(owner.lower(), repo.lower(), path, ref)] = data

    def fail_with(self, owner: str, repo: str, path: str, error: Exception) -> None:
        """Make every request for a file raise `error`."""
        self._failures[(owner.lower(), repo.lower(), path)] = error

    def calls_for(self, owner: str, repo: str, path: str | None = None) -> int:
        """Count recorded calls for a repository (and optionally a path)."""
        return sum(
            1
            for call_owner, call_repo, call_path, _ in self.calls
            if call_owner.lower() == owner.lower()
            and call_repo.lower() == repo.lower()
            and (path is None or call_path == path)
        )

    async def get_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> ContentResponse:
        """Get a stored file."""
        self.calls.append((owner, repo, path, ref))

        failure = self._failures.get((owner.lower(), repo.lower(), path))
        if failure is not None:
            raise failure

        for key in ((owner.lower(), repo.lower(), path, ref), (owner.lower(), repo.lower(), path, None)):
            if key in self._files:
                return ContentResponse(data=self._files[key])

        raise ContentNotFoundError(f"Missing content for {owner}/{repo}/{path}", self.name)

    def clear(self) -> None:
        """Clear all files, failures and recorded calls."""
        self._files.clear()
        self._failures.clear()
        self.calls.clear()


class LocalContentSource:
    """
    Reads repository files from a local directory.

    Directory layout:

    base_dir/
    ├── acme/
    │   ├── .ubiquity-os/
    │   │   └── .github/.ubiquity-os.config.yml   # org-level config
    │   └── demo/
    │       └── .github/.ubiquity-os.config.yml   # repo-level config
    └── ubiquity-os/
        └── example-plugin/
            └── manifest.json

    Refs are ignored: the checked-out working tree is served.
    """

    name = "local"

    def __init__(self, base_dir: str | Path):
        self._base_dir = Path(base_dir)

    async def get_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> ContentResponse:
        """Read a file from disk."""
        repo_dir = (self._base_dir / owner / repo).resolve()
        file_path = (repo_dir / path).resolve()

        if repo_dir not in file_path.parents:
            raise ContentSourceError(f"Path escapes repository: {path}", self.name, status_code=400)

        if not file_path.is_file():
            raise ContentNotFoundError(f"File not found: {file_path}", self.name)

        try:
            return ContentResponse(data=file_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"[local_source] Failed to read {file_path}: {e}")
            raise ContentSourceError(f"Failed to read {path}: {e}", self.name) from e
