"""Content source resolvers for multi-tenant callers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ubiquity_sdk.configuration.schemas import Location

    from .base import ContentSource


class StaticContentSourceResolver:
    """
    Maps repository owners to content sources.

    Typical use is one authenticated source per organization installation.
    Owners are matched case-insensitively; unknown owners resolve to None so
    the handler's default source is used.
    """

    def __init__(self, sources: dict[str, ContentSource] | None = None):
        self._sources: dict[str, ContentSource] = {
            owner.lower(): source for owner, source in (sources or {}).items()
        }

    def register(self, owner: str, source: ContentSource) -> None:
        """Register the source serving one owner."""
        self._sources[owner.lower()] = source

    async def resolve(self, location: Location) -> ContentSource | None:
        return self._sources.get(location.owner.lower())
