"""MusicBrainz and Cover Art Archive client implementing IMusicMetadataProvider.

Talks to the MusicBrainz WS2 JSON API with a shared ``httpx.AsyncClient``
and resolves cover art through the Cover Art Archive.  Every MusicBrainz
request passes through the process-wide sliding-window limiter (5 requests
per second in bursts, 100 ms spacing otherwise) and carries the
``User-Agent`` header MusicBrainz requires.

The client holds no entity state of its own.  ``search`` writes every
album and release group it resolves into the injected
:class:`~albumlog.services.entity_cache.EntityCache`, and cover art is
persisted through the injected artwork store.

Error contract
--------------
* Direct fetches (``get_*``) return ``None`` / ``[]`` on HTTP 404 and raise
  ``UpstreamUnavailableError`` on transport errors and other non-2xx
  replies, ``MalformedResponseError`` on bad JSON or missing fields.
* ``search`` never raises for upstream failures: sub-fetch errors degrade
  the affected album and a failed top-level request yields an empty
  result.  ``search_release_groups`` is the variant that raises.
* Cover-art resolution never raises; failures mean "no artwork".
"""

from __future__ import annotations

import asyncio
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from albumlog.interfaces.artwork_store import IArtworkStore
from albumlog.interfaces.metadata_provider import IMusicMetadataProvider
from albumlog.models.entities import Album, Artist, ReleaseGroup, SearchResult, Track
from albumlog.services.entity_cache import EntityCache
from albumlog.utils.concurrency import gather_mapping
from albumlog.utils.errors import (
    MalformedResponseError,
    StoreUnavailableError,
    UpstreamUnavailableError,
)
from albumlog.utils.logging import get_logger
from albumlog.utils.rate_limiter import SlidingWindowRateLimiter, get_musicbrainz_limiter

MUSICBRAINZ_API_BASE = "https://musicbrainz.org/ws/2"
COVER_ART_ARCHIVE_BASE = "https://coverartarchive.org"
DEFAULT_USER_AGENT = "AlbumADay/0.0.1 ( https://github.com/pupperpowell/album-a-day )"

_PROVIDER = "musicbrainz"
_THUMBNAIL_SIZE = "500"

logger = get_logger(__name__, provider=_PROVIDER)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

# A group whose sub-fetch fails or comes back in an unexpected shape still
# yields a degraded album.
_GROUP_RESOLUTION_ERRORS = (UpstreamUnavailableError, TypeError, AttributeError, KeyError)


def _release_sort_key(release: dict) -> tuple[bool, str]:
    """Earliest date first; releases without a date go last."""
    date = str(release.get("date") or "")
    return (not date, date)


class MusicBrainzClient(IMusicMetadataProvider):
    """Upstream metadata client with cache population side effects.

    Parameters
    ----------
    http_client:
        Shared async HTTP client.  Timeouts are whatever the caller
        configured on it.
    entity_cache:
        Cache every resolved search album / release group is written to.
        Also backs the cover-art URL cache.
    artwork_store:
        Optional local artwork store.  When set, resolved cover art is
        saved locally and the local path is preferred.
    limiter:
        Rate limiter for MusicBrainz requests.  Defaults to the
        process-wide singleton.
    user_agent:
        ``<app>/<version> ( <contact> )`` identifier.
    cover_art_concurrency:
        Maximum cover-art lookups in flight during a batch.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        entity_cache: EntityCache,
        artwork_store: IArtworkStore | None = None,
        limiter: SlidingWindowRateLimiter | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = MUSICBRAINZ_API_BASE,
        cover_art_base_url: str = COVER_ART_ARCHIVE_BASE,
        cover_art_concurrency: int = 5,
    ) -> None:
        self._http = http_client
        self._cache = entity_cache
        self._artwork = artwork_store
        self._limiter = limiter or get_musicbrainz_limiter()
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self._base_url = base_url.rstrip("/")
        self._cover_base_url = cover_art_base_url.rstrip("/")
        self._cover_semaphore = asyncio.Semaphore(cover_art_concurrency)

        logger.info("musicbrainz_client_initialized", user_agent=user_agent)

    def get_provider_name(self) -> str:
        return _PROVIDER

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------

    async def _request_json(self, path: str, params: dict[str, Any]) -> dict | None:
        """GET a MusicBrainz resource; ``None`` on 404.

        The limiter slot is claimed before the request is issued, so every
        attempt counts against the window whether it succeeds or not.
        """
        url = f"{self._base_url}/{path}"
        params = {**params, "fmt": "json"}

        await self._limiter.acquire()
        try:
            response = await self._http.get(url, params=params, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("musicbrainz_request_failed", url=url, error=str(exc))
            raise UpstreamUnavailableError(
                f"Request to {path} failed: {exc}", provider_name=_PROVIDER
            ) from exc

        if response.status_code == 404:
            logger.debug("musicbrainz_not_found", url=url)
            return None
        if not response.is_success:
            logger.warning("musicbrainz_http_error", url=url, status=response.status_code)
            raise UpstreamUnavailableError(
                f"HTTP {response.status_code} for {path}",
                provider_name=_PROVIDER,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Invalid JSON from {path}: {exc}", provider_name=_PROVIDER
            ) from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Expected a JSON object from {path}", provider_name=_PROVIDER
            )
        return data

    # ------------------------------------------------------------------
    # JSON -> model mapping
    # ------------------------------------------------------------------
    #
    # Upstream JSON is untrusted: every mapper turns an unexpected shape
    # into MalformedResponseError rather than TypeError / AttributeError.

    @staticmethod
    def _require(data: dict, field: str) -> Any:
        value = data.get(field)
        if value in (None, ""):
            raise MalformedResponseError(
                f"Response is missing {field!r}", provider_name=_PROVIDER
            )
        return value

    @staticmethod
    def _objects(data: dict, field: str) -> list[dict]:
        """JSON objects held in the array *field*; non-object entries are dropped."""
        value = data.get(field) or []
        if not isinstance(value, list):
            raise MalformedResponseError(
                f"Expected {field!r} to be an array", provider_name=_PROVIDER
            )
        return [item for item in value if isinstance(item, dict)]

    @staticmethod
    def _build(model: type[_ModelT], **fields: Any) -> _ModelT:
        try:
            return model(**fields)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Unexpected {model.__name__} shape ({exc.error_count()} invalid fields)",
                provider_name=_PROVIDER,
            ) from exc

    @staticmethod
    def _count(data: dict) -> int:
        count = data.get("count")
        return count if isinstance(count, int) and not isinstance(count, bool) else 0

    @staticmethod
    def _first_credit(data: dict) -> tuple[str, str] | None:
        """Return ``(name, artist id)`` of the first artist credit, if any.

        Raises
        ------
        MalformedResponseError
            If the credit's ``artist`` is present but not an object.
        """
        credits = data.get("artist-credit") or []
        if not isinstance(credits, list) or not credits or not isinstance(credits[0], dict):
            return None
        credit = credits[0]
        artist = credit.get("artist") or {}
        if not isinstance(artist, dict):
            raise MalformedResponseError(
                "Artist credit does not hold an artist object", provider_name=_PROVIDER
            )
        name = credit.get("name") or artist.get("name")
        artist_id = artist.get("id")
        if not isinstance(name, str) or not isinstance(artist_id, str):
            return None
        if not name or not artist_id:
            return None
        return name, artist_id

    @classmethod
    def _map_tracks(cls, release: dict) -> list[Track] | None:
        tracks: list[Track] = []
        for medium in cls._objects(release, "media"):
            for track in cls._objects(medium, "tracks"):
                tracks.append(
                    cls._build(
                        Track,
                        id=cls._require(track, "id"),
                        title=track.get("title") or "",
                        position=track.get("position"),
                        length_ms=track.get("length"),
                    )
                )
        return tracks or None

    @classmethod
    def _map_release(
        cls, release: dict, credit: tuple[str, str], include_tracks: bool = False
    ) -> Album:
        group = release.get("release-group") or {}
        if not isinstance(group, dict):
            raise MalformedResponseError(
                "Expected 'release-group' to be an object", provider_name=_PROVIDER
            )
        return cls._build(
            Album,
            id=cls._require(release, "id"),
            title=cls._require(release, "title"),
            artist_name=credit[0],
            artist_id=credit[1],
            release_date=release.get("date") or None,
            tracks=cls._map_tracks(release) if include_tracks else None,
            release_group_id=group.get("id"),
        )

    @classmethod
    def _map_release_group(cls, group: dict, credit: tuple[str, str]) -> ReleaseGroup:
        return cls._build(
            ReleaseGroup,
            id=cls._require(group, "id"),
            title=cls._require(group, "title"),
            artist_name=credit[0],
            artist_id=credit[1],
            type=group.get("primary-type") or group.get("type"),
            first_release_date=group.get("first-release-date") or None,
        )

    @classmethod
    def _map_artist(cls, artist: dict) -> Artist:
        return cls._build(
            Artist,
            id=cls._require(artist, "id"),
            name=cls._require(artist, "name"),
            country=artist.get("country") or None,
            disambiguation=artist.get("disambiguation") or None,
        )

    @classmethod
    def _map_artists(cls, data: dict) -> list[Artist]:
        return [cls._map_artist(a) for a in cls._objects(data, "artists")]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, query: str, limit: int = 10) -> SearchResult:
        """Release-group search that degrades instead of raising.

        A failed top-level request is logged and returns an empty result.
        """
        try:
            return await self.search_release_groups(query, limit)
        except UpstreamUnavailableError as exc:
            logger.error("musicbrainz_search_failed", query=query, error=str(exc))
            return SearchResult.empty()

    async def search_release_groups(self, query: str, limit: int = 10) -> SearchResult:
        """Search release groups and resolve one representative album per group.

        For every group the earliest release (undated last) is fetched with
        its cover art.  A group whose releases cannot be resolved still
        yields an album synthesised from the group itself.  Every album and
        release group is written to the entity cache before returning.

        Raises
        ------
        UpstreamUnavailableError
            If the search request itself fails.
        """
        data = await self._request_json("release-group/", {"query": query, "limit": limit})
        if data is None:
            return SearchResult.empty()

        albums: list[Album] = []
        for raw_group in self._objects(data, "release-groups"):
            try:
                credit = self._first_credit(raw_group)
                if credit is None:
                    logger.debug("release_group_without_credit", id=raw_group.get("id"))
                    continue
                group = self._map_release_group(raw_group, credit)
            except MalformedResponseError as exc:
                logger.warning("release_group_malformed", error=str(exc))
                continue

            album = await self._resolve_group_album(group)
            albums.append(album)
            await self._cache.cache_album(album)
            await self._cache.cache_release_group(group)

        result = SearchResult(
            albums=albums,
            artists=self._map_artists(data),
            total=self._count(data),
        )
        logger.info(
            "musicbrainz_search_complete",
            query=query,
            albums=len(result.albums),
            total=result.total,
        )
        return result

    async def _resolve_group_album(self, group: ReleaseGroup) -> Album:
        try:
            releases = await self.get_release_group_releases(
                group.id, limit=1, artist_name=group.artist_name, artist_id=group.artist_id
            )
        except _GROUP_RESOLUTION_ERRORS as exc:
            logger.warning("release_group_releases_failed", group_id=group.id, error=str(exc))
            releases = []

        if releases:
            return releases[0]

        logger.info("release_group_fallback_album", group_id=group.id)
        return Album(
            id=group.id,
            title=group.title,
            artist_name=group.artist_name,
            artist_id=group.artist_id,
            release_date=group.first_release_date,
            release_group_id=group.id,
        )

    async def search_basic(self, query: str, limit: int = 10) -> SearchResult:
        """Release search without cover art and without touching the cache."""
        data = await self._request_json("release/", {"query": query, "limit": limit})
        if data is None:
            return SearchResult.empty()

        albums: list[Album] = []
        for release in self._objects(data, "releases"):
            credit = self._first_credit(release)
            if credit is None:
                continue
            albums.append(self._map_release(release, credit))

        return SearchResult(
            albums=albums,
            artists=self._map_artists(data),
            total=self._count(data),
        )

    async def enrich_with_cover_art(self, albums: list[Album]) -> list[Album]:
        """Return *albums* with cover art filled in where it was missing."""
        missing = [album.id for album in albums if not album.cover_art_url]
        if not missing:
            return list(albums)

        urls = await self.get_cover_art_urls(missing)
        return [
            album.model_copy(update={"cover_art_url": urls[album.id]})
            if not album.cover_art_url and urls.get(album.id)
            else album
            for album in albums
        ]

    # ------------------------------------------------------------------
    # Direct fetches
    # ------------------------------------------------------------------

    async def get_release(self, external_id: str) -> Album | None:
        data = await self._request_json(
            f"release/{external_id}", {"inc": "artist-credits recordings release-groups"}
        )
        if data is None:
            return None

        credit = self._first_credit(data)
        if credit is None:
            raise MalformedResponseError(
                f"Release {external_id} has no artist credit", provider_name=_PROVIDER
            )
        album = self._map_release(data, credit, include_tracks=True)

        cover = await self.get_cover_art_url(album.id)
        if cover:
            album = album.model_copy(update={"cover_art_url": cover})
        return album

    async def get_artist(self, external_id: str) -> Artist | None:
        data = await self._request_json(f"artist/{external_id}", {})
        if data is None:
            return None
        return self._map_artist(data)

    async def get_artist_releases(self, external_id: str, limit: int = 25) -> list[Album]:
        data = await self._request_json(
            "release/",
            {"artist": external_id, "limit": limit, "inc": "artist-credits release-groups"},
        )
        if data is None:
            return []

        albums = [
            self._map_release(release, credit)
            for release in self._objects(data, "releases")
            if (credit := self._first_credit(release)) is not None
        ]
        return await self.enrich_with_cover_art(albums)

    async def get_release_group(self, external_id: str) -> ReleaseGroup | None:
        data = await self._request_json(
            f"release-group/{external_id}", {"inc": "artist-credits"}
        )
        if data is None:
            return None

        credit = self._first_credit(data)
        if credit is None:
            raise MalformedResponseError(
                f"Release group {external_id} has no artist credit", provider_name=_PROVIDER
            )
        return self._map_release_group(data, credit)

    async def get_release_group_releases(
        self,
        group_id: str,
        limit: int = 5,
        artist_name: str | None = None,
        artist_id: str | None = None,
    ) -> list[Album]:
        """Fetch the releases of a group, earliest first, with cover art.

        Release entries in this response carry no artist credit, so the
        given artist (or the group title / group id) is used instead.
        """
        data = await self._request_json(f"release-group/{group_id}", {"inc": "releases"})
        if data is None:
            return []

        releases = sorted(self._objects(data, "releases"), key=_release_sort_key)[:limit]
        fallback_name = artist_name or data.get("title") or ""
        credit = (fallback_name, artist_id or group_id)

        albums = [
            self._map_release(release, credit).model_copy(update={"release_group_id": group_id})
            for release in releases
        ]
        return await self.enrich_with_cover_art(albums)

    # ------------------------------------------------------------------
    # Cover art
    # ------------------------------------------------------------------

    async def get_cover_art_url(self, release_id: str) -> str | None:
        """Resolve cover art for a release.  Never raises.

        Lookup order: stored local artwork, the cover-art URL cache, then
        the Cover Art Archive.  A newly resolved image is saved through the
        artwork store when one is configured and the local path is
        returned in preference to the archive URL.
        """
        if self._artwork is not None:
            try:
                local = await self._artwork.find_existing(release_id)
            except OSError as exc:
                logger.warning("artwork_lookup_failed", release_id=release_id, error=str(exc))
                local = None
            if local:
                return local

        try:
            cached = await self._cache.get_cached_cover_art(release_id)
        except StoreUnavailableError as exc:
            logger.warning("cover_art_cache_read_failed", release_id=release_id, error=str(exc))
            cached = None
        if cached:
            return cached

        url = await self._fetch_cover_art(release_id)
        if url is None:
            return None

        if self._artwork is not None:
            local = await self._artwork.save(release_id, url)
            if local:
                url = local

        try:
            await self._cache.cache_cover_art(release_id, url)
        except StoreUnavailableError as exc:
            logger.warning("cover_art_cache_write_failed", release_id=release_id, error=str(exc))
        return url

    async def _fetch_cover_art(self, release_id: str) -> str | None:
        url = f"{self._cover_base_url}/release/{release_id}"
        try:
            response = await self._http.get(url, headers=self._headers, follow_redirects=True)
        except httpx.HTTPError as exc:
            logger.warning("cover_art_fetch_failed", release_id=release_id, error=str(exc))
            return None

        if response.status_code != 200:
            logger.debug(
                "cover_art_unavailable", release_id=release_id, status=response.status_code
            )
            return None

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("cover_art_malformed", release_id=release_id, error=str(exc))
            return None

        images = data.get("images") if isinstance(data, dict) else None
        if not isinstance(images, list):
            images = []
        images = [img for img in images if isinstance(img, dict)]
        if not images:
            logger.debug("cover_art_no_images", release_id=release_id)
            return None

        image = next((img for img in images if img.get("front")), images[0])
        thumbnails = image.get("thumbnails")
        if isinstance(thumbnails, dict):
            thumbnail = thumbnails.get(_THUMBNAIL_SIZE)
            if isinstance(thumbnail, str) and thumbnail:
                return thumbnail
        original = image.get("image")
        return original if isinstance(original, str) and original else None

    async def get_cover_art_urls(self, release_ids: list[str]) -> dict[str, str | None]:
        """Resolve cover art for many releases concurrently.

        Every id is present in the result.  An id whose lookup raised maps
        to ``None`` without affecting the others.
        """
        return await gather_mapping(
            self.get_cover_art_url,
            release_ids,
            default=None,
            semaphore=self._cover_semaphore,
            logger=logger,
            error_msg="cover_art_fetch_failed",
        )
