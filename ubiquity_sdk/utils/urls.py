"""URL helpers for worker-hosted plugins."""

from __future__ import annotations

MANIFEST_FILE_NAME = "manifest.json"


def normalize_base_url(base_url: str) -> str:
    """Strip surrounding whitespace and every trailing slash."""
    return base_url.strip().rstrip("/")


def manifest_url_for(base_url: str) -> str:
    """
    Build the manifest URL served by a worker plugin.

    A base that already points at a JSON document is used as-is, otherwise
    `/manifest.json` is appended.

    Examples:
        >>> manifest_url_for("https://example.com/plugin/")
        'https://example.com/plugin/manifest.json'
        >>> manifest_url_for("https://example.com/plugin/manifest.json")
        'https://example.com/plugin/manifest.json'
    """
    normalized = normalize_base_url(base_url)
    if normalized.lower().endswith(".json"):
        return normalized
    return f"{normalized}/{MANIFEST_FILE_NAME}"
