"""
Ubiquity SDK Utilities

Common helpers used across the configuration engine.
"""

from .log import configure_logging, log_ok
from .urls import manifest_url_for, normalize_base_url

__all__ = [
    "configure_logging",
    "log_ok",
    "manifest_url_for",
    "normalize_base_url",
]
