"""Abstract base class for the upstream music-metadata provider.

Defines the narrow contract the rest of albumlog uses to resolve user
queries and known external ids into Album / Artist / ReleaseGroup records.
The concrete implementation talks to MusicBrainz and the Cover Art
Archive; tests substitute fakes.

Error contract
--------------
* A record the provider does not know is returned as ``None`` (or ``[]``).
* A provider that cannot answer raises
  :class:`~albumlog.utils.errors.UpstreamUnavailableError` (or its
  subclass ``MalformedResponseError``) from the single-record lookups.
* ``search`` never raises for provider failures; it degrades instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from albumlog.models.entities import Album, Artist, ReleaseGroup, SearchResult


class IMusicMetadataProvider(ABC):
    """Contract for the external metadata provider."""

    @abstractmethod
    async def search(self, query: str, limit: int = 10) -> SearchResult:
        """Search release groups, resolving and caching one album per group.

        Parameters
        ----------
        query:
            Free-text search query.
        limit:
            Maximum number of release groups to request.

        Returns
        -------
        SearchResult
            Albums in provider relevance order.  Empty when the provider
            is unavailable.
        """

    @abstractmethod
    async def get_release(self, external_id: str) -> Album | None:
        """Fetch one release (with track list and cover art) by provider id."""

    @abstractmethod
    async def get_artist(self, external_id: str) -> Artist | None:
        """Fetch one artist by provider id."""

    @abstractmethod
    async def get_artist_releases(self, external_id: str, limit: int = 25) -> list[Album]:
        """Fetch up to *limit* releases credited to the artist."""

    @abstractmethod
    async def get_release_group(self, external_id: str) -> ReleaseGroup | None:
        """Fetch one release group by provider id."""

    @abstractmethod
    async def get_release_group_releases(
        self,
        group_id: str,
        limit: int = 5,
        artist_name: str | None = None,
        artist_id: str | None = None,
    ) -> list[Album]:
        """Fetch up to *limit* releases of a group, earliest first."""

    @abstractmethod
    async def get_cover_art_url(self, release_id: str) -> str | None:
        """Resolve a cover image for a release; ``None`` when there is none."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for log events."""
