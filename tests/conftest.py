"""
Pytest configuration and fixtures for ubiquity_sdk tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from ubiquity_sdk.configuration import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from ubiquity_sdk.configuration import CONFIG_PROD_FULL_PATH  # noqa: E402
from ubiquity_sdk.sources import MemoryContentSource  # noqa: E402


class RecordingLogger:
    """Logger double that records entries, including the optional `ok` level."""

    def __init__(self):
        self.entries: list[tuple[str, str]] = []

    def _record(self, level: str, message: str, *args, **kwargs) -> None:
        self.entries.append((level, message % args if args else message))

    def debug(self, message, *args, **kwargs):
        self._record("debug", message, *args)

    def info(self, message, *args, **kwargs):
        self._record("info", message, *args)

    def warning(self, message, *args, **kwargs):
        self._record("warning", message, *args)

    def error(self, message, *args, **kwargs):
        self._record("error", message, *args)

    def log(self, level, message, *args, **kwargs):
        self._record({30: "warning", 40: "error"}.get(level, "info"), message, *args)

    def ok(self, message, *args, **kwargs):
        self._record("ok", message, *args)

    def messages(self, level: str) -> list[str]:
        return [message for entry_level, message in self.entries if entry_level == level]


@pytest.fixture
def source():
    """Empty in-memory content source."""
    return MemoryContentSource()


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def write_config(source):
    """Store a production configuration file for a repository."""

    def _write(owner: str, repo: str, data: str, path: str = CONFIG_PROD_FULL_PATH) -> None:
        source.add_file(owner, repo, path, data)

    return _write


@pytest.fixture
def write_manifest(source):
    """Store a manifest.json at the root of a plugin repository."""

    def _write(owner: str, repo: str, manifest: dict, ref: str | None = None) -> None:
        source.add_file(owner, repo, "manifest.json", json.dumps(manifest), ref=ref)

    return _write


@pytest.fixture
def sample_manifest():
    return {
        "name": "Example",
        "short_name": "ubiquity-os/example-plugin@1.0.0",
        "description": "Example plugin manifest",
        "ubiquity:listeners": ["issues.closed"],
        "skipBotEvents": False,
    }
