"""Cache-aside lookups of albums, artists and release groups by id.

Each lookup checks the entity cache first (by internal id or by external
id) and only on a miss, and only when an external id is known, fetches
from the metadata provider and writes the record back under both ids.

Store read failures are treated as misses.  Upstream errors propagate so
callers can tell "not found" (``None``) from "provider unavailable".
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from albumlog.interfaces.metadata_provider import IMusicMetadataProvider
from albumlog.models.entities import Album, ReleaseGroup
from albumlog.models.responses import AlbumLookup, ArtistLookup
from albumlog.services.entity_cache import EntityCache
from albumlog.utils.errors import InvalidInputError, StoreUnavailableError
from albumlog.utils.logging import get_logger

_T = TypeVar("_T")


def _require_one_id(internal_id: str | None, external_id: str | None) -> None:
    if bool(internal_id) == bool(external_id):
        raise InvalidInputError("Exactly one of 'id' or 'mbid' must be provided")


class CatalogService:
    """Album / artist / release-group lookups over the entity cache."""

    def __init__(self, entity_cache: EntityCache, provider: IMusicMetadataProvider) -> None:
        self._cache = entity_cache
        self._provider = provider
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def _read(self, fetch: Callable[[str], Awaitable[_T | None]], key: str) -> _T | None:
        try:
            return await fetch(key)
        except StoreUnavailableError as exc:
            self._logger.warning("cache_read_failed", key=key, error=str(exc))
            return None

    # ------------------------------------------------------------------
    # Albums
    # ------------------------------------------------------------------

    async def get_album(
        self, album_id: str | None = None, mbid: str | None = None
    ) -> AlbumLookup | None:
        """Look up an album by internal id or by MusicBrainz id.

        Only an ``mbid`` lookup can fall through to the provider.  A
        fetched album is cached under both ids, and its release group's
        release list is seeded with it.
        """
        _require_one_id(album_id, mbid)

        if album_id:
            album = await self._read(self._cache.get_cached_album, album_id)
        else:
            album = await self._read(self._cache.get_cached_album_by_external_id, mbid)
        if album is not None:
            return AlbumLookup(album=album, cached=True)
        if not mbid:
            return None

        album = await self._provider.get_release(mbid)
        if album is None:
            return None

        await self._cache.cache_album(album)
        await self._cache.cache_album_by_external_id(mbid, album)
        if album.release_group_id:
            await self._cache.cache_release_group_releases(album.release_group_id, [album])
        self._logger.info("album_fetched", mbid=mbid)
        return AlbumLookup(album=album, cached=False)

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    async def get_artist(
        self,
        artist_id: str | None = None,
        mbid: str | None = None,
        include_albums: bool = False,
    ) -> ArtistLookup | None:
        """Look up an artist, optionally with a discography.

        The discography comes from ``artist:<id>:albums`` or, on a miss,
        from the provider; fetched albums are cached individually too.
        """
        _require_one_id(artist_id, mbid)

        cached = True
        if artist_id:
            artist = await self._read(self._cache.get_cached_artist, artist_id)
        else:
            artist = await self._read(self._cache.get_cached_artist_by_external_id, mbid)

        if artist is None:
            if not mbid:
                return None
            artist = await self._provider.get_artist(mbid)
            if artist is None:
                return None
            cached = False
            await self._cache.cache_artist(artist)
            await self._cache.cache_artist_by_external_id(mbid, artist)
            self._logger.info("artist_fetched", mbid=mbid)

        if not include_albums:
            return ArtistLookup(artist=artist, cached=cached)

        albums = await self._read(self._cache.get_cached_artist_albums, artist.id)
        if albums is not None:
            return ArtistLookup(artist=artist, cached=cached, albums=albums, albums_cached=True)

        albums = await self._provider.get_artist_releases(mbid or artist.id)
        if albums:
            await self._cache.cache_artist_albums(artist.id, albums)
            for album in albums:
                await self._cache.cache_album(album)
                await self._cache.cache_album_by_external_id(album.id, album)
        return ArtistLookup(artist=artist, cached=cached, albums=albums, albums_cached=False)

    # ------------------------------------------------------------------
    # Release groups
    # ------------------------------------------------------------------

    async def get_release_group(self, mbid: str) -> ReleaseGroup | None:
        if not mbid:
            raise InvalidInputError("'mbid' is required")

        group = await self._read(self._cache.get_cached_release_group_by_external_id, mbid)
        if group is not None:
            return group

        group = await self._provider.get_release_group(mbid)
        if group is None:
            return None
        await self._cache.cache_release_group(group)
        await self._cache.cache_release_group_by_external_id(mbid, group)
        return group

    async def get_release_group_releases(self, group_id: str, limit: int = 5) -> list[Album]:
        """Releases of a group, earliest first, from cache or provider."""
        if not group_id:
            raise InvalidInputError("'group_id' is required")
        if limit < 1:
            raise InvalidInputError("Limit must be at least 1")

        releases = await self._read(self._cache.get_cached_release_group_releases, group_id)
        if releases is not None:
            return releases[:limit]

        releases = await self._provider.get_release_group_releases(group_id, limit)
        if releases:
            await self._cache.cache_release_group_releases(group_id, releases)
        return releases
