"""Read/write cache for albums, artists and release groups.

Architecture role: **owner of every cached entity record**
-----------------------------------------------------------
The MusicBrainz client and the catalog service never hold entity state;
they only write into (and read from) this cache.  Each record kind can be
addressed two independent ways:

* by internal id      -- ``album:<id>``, ``artist:<id>``, ``release_group:<id>``
* by external id      -- ``album:mbid:<id>``, ``artist:mbid:<id>``, ...

The two entries are separate keys written by separate calls.  Writing one
never touches the other, and ``invalidate_*`` only deletes the internal-id
entry.  Nothing keeps the two in sync over time; both expire on their own
TTL and self-heal on the next upstream fetch.

Additional key families:

* ``album:hash:<id>``             -- title-index hash for full-text search
* ``artist:<id>:albums``          -- ordered album list (plain overwrite)
* ``release_group:<id>:releases`` -- ordered release list (plain overwrite)
* ``cover:<release id>``          -- resolved cover-art URL

Error policy: a read returns ``None`` when the key is absent, expired or
holds unparseable JSON, and raises ``StoreUnavailableError`` only when the
store itself fails.  Writes always propagate store failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.models.entities import Album, Artist, CacheStats, ReleaseGroup
from albumlog.utils.errors import StoreUnavailableError
from albumlog.utils.logging import get_logger

_RecordT = TypeVar("_RecordT", bound=BaseModel)

ALBUM_PREFIX = "album:"
ARTIST_PREFIX = "artist:"
RELEASE_GROUP_PREFIX = "release_group:"
COVER_PREFIX = "cover:"
SEARCH_PREFIX = "search:"
ALBUM_HASH_PREFIX = f"{ALBUM_PREFIX}hash:"
EXTERNAL_ID_MARKER = "mbid:"

ALBUM_INDEX_NAME = "album_idx"

_ALBUM_LIST = TypeAdapter(list[Album])


@dataclass(frozen=True)
class TTLPolicy:
    """Time-to-live in seconds per cached kind."""

    entity: int = 86400          # 24h
    search: int = 14400          # 4h
    cover_art: int = 604800      # 7 days

    @classmethod
    def from_config(cls, config: dict) -> TTLPolicy:
        cache = config.get("cache", {})
        return cls(
            entity=int(cache.get("entity_ttl_seconds", cls.entity)),
            search=int(cache.get("search_ttl_seconds", cls.search)),
            cover_art=int(cache.get("cover_art_ttl_seconds", cls.cover_art)),
        )


def _is_internal_id_key(key: str, prefix: str) -> bool:
    """True for ``<prefix><id>`` keys, false for external-id, index and list keys."""
    rest = key[len(prefix):]
    if rest.startswith(EXTERNAL_ID_MARKER) or rest.startswith("hash:"):
        return False
    return ":" not in rest


class EntityCache:
    """Entity cache over an injected key-value store.

    Parameters
    ----------
    store:
        Shared key-value store handle.
    ttl:
        Per-kind TTLs; defaults to 24h / 4h / 7d.
    """

    def __init__(self, store: IKeyValueStore, ttl: TTLPolicy | None = None) -> None:
        self._store = store
        self._ttl = ttl or TTLPolicy()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def ttl(self) -> TTLPolicy:
        return self._ttl

    # -- Private helpers -------------------------------------------------------

    def _entity_ttl(self, ttl: int | None) -> int:
        """Explicit *ttl* if given, else the entity TTL.  Non-positive values are rejected."""
        if ttl is None:
            return self._ttl.entity
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        return ttl

    async def _write(self, key: str, payload: str, ttl: int | None) -> None:
        await self._store.set_with_expiry(key, payload, self._entity_ttl(ttl))
        self._logger.debug("entity_cached", key=key)

    async def _read(self, key: str, model: type[_RecordT]) -> _RecordT | None:
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.warning("cached_record_malformed", key=key, error=str(exc))
            return None

    async def _read_album_list(self, key: str) -> list[Album] | None:
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return _ALBUM_LIST.validate_json(raw)
        except ValidationError as exc:
            self._logger.warning("cached_record_malformed", key=key, error=str(exc))
            return None

    @staticmethod
    def _dump_album_list(albums: list[Album]) -> str:
        return _ALBUM_LIST.dump_json(albums, by_alias=True, exclude_none=True).decode()

    # ------------------------------------------------------------------
    # Albums
    # ------------------------------------------------------------------

    async def cache_album(self, album: Album, ttl: int | None = None) -> None:
        """Write ``album:<id>`` plus its title-index hash ``album:hash:<id>``.

        The two keys are written one after the other, not atomically.
        """
        ttl = self._entity_ttl(ttl)
        await self._write(f"{ALBUM_PREFIX}{album.id}", album.to_json(), ttl)

        hash_key = f"{ALBUM_HASH_PREFIX}{album.id}"
        await self._store.hash_set(
            hash_key,
            {
                "title": album.title,
                "artistName": album.artist_name,
                "id": album.id,
                "artistId": album.artist_id,
            },
        )
        await self._store.expire(hash_key, ttl)

    async def get_cached_album(self, album_id: str) -> Album | None:
        return await self._read(f"{ALBUM_PREFIX}{album_id}", Album)

    async def cache_album_by_external_id(
        self, external_id: str, album: Album, ttl: int | None = None
    ) -> None:
        await self._write(f"{ALBUM_PREFIX}{EXTERNAL_ID_MARKER}{external_id}", album.to_json(), ttl)

    async def get_cached_album_by_external_id(self, external_id: str) -> Album | None:
        return await self._read(f"{ALBUM_PREFIX}{EXTERNAL_ID_MARKER}{external_id}", Album)

    async def invalidate_album(self, album_id: str) -> bool:
        """Delete ``album:<id>`` only.  External-id, index and list entries stay."""
        removed = await self._store.delete(f"{ALBUM_PREFIX}{album_id}")
        self._logger.info("entity_invalidated", kind="album", id=album_id, removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    async def cache_artist(self, artist: Artist, ttl: int | None = None) -> None:
        await self._write(f"{ARTIST_PREFIX}{artist.id}", artist.to_json(), ttl)

    async def get_cached_artist(self, artist_id: str) -> Artist | None:
        return await self._read(f"{ARTIST_PREFIX}{artist_id}", Artist)

    async def cache_artist_by_external_id(
        self, external_id: str, artist: Artist, ttl: int | None = None
    ) -> None:
        await self._write(
            f"{ARTIST_PREFIX}{EXTERNAL_ID_MARKER}{external_id}", artist.to_json(), ttl
        )

    async def get_cached_artist_by_external_id(self, external_id: str) -> Artist | None:
        return await self._read(f"{ARTIST_PREFIX}{EXTERNAL_ID_MARKER}{external_id}", Artist)

    async def invalidate_artist(self, artist_id: str) -> bool:
        """Delete ``artist:<id>`` only; ``artist:<id>:albums`` is left to expire."""
        removed = await self._store.delete(f"{ARTIST_PREFIX}{artist_id}")
        self._logger.info("entity_invalidated", kind="artist", id=artist_id, removed=removed)
        return removed

    async def cache_artist_albums(
        self, artist_id: str, albums: list[Album], ttl: int | None = None
    ) -> None:
        """Replace the whole album list for *artist_id*."""
        await self._write(f"{ARTIST_PREFIX}{artist_id}:albums", self._dump_album_list(albums), ttl)

    async def get_cached_artist_albums(self, artist_id: str) -> list[Album] | None:
        return await self._read_album_list(f"{ARTIST_PREFIX}{artist_id}:albums")

    # ------------------------------------------------------------------
    # Release groups
    # ------------------------------------------------------------------

    async def cache_release_group(self, group: ReleaseGroup, ttl: int | None = None) -> None:
        await self._write(f"{RELEASE_GROUP_PREFIX}{group.id}", group.to_json(), ttl)

    async def get_cached_release_group(self, group_id: str) -> ReleaseGroup | None:
        return await self._read(f"{RELEASE_GROUP_PREFIX}{group_id}", ReleaseGroup)

    async def cache_release_group_by_external_id(
        self, external_id: str, group: ReleaseGroup, ttl: int | None = None
    ) -> None:
        await self._write(
            f"{RELEASE_GROUP_PREFIX}{EXTERNAL_ID_MARKER}{external_id}", group.to_json(), ttl
        )

    async def get_cached_release_group_by_external_id(
        self, external_id: str
    ) -> ReleaseGroup | None:
        return await self._read(
            f"{RELEASE_GROUP_PREFIX}{EXTERNAL_ID_MARKER}{external_id}", ReleaseGroup
        )

    async def invalidate_release_group(self, group_id: str) -> bool:
        removed = await self._store.delete(f"{RELEASE_GROUP_PREFIX}{group_id}")
        self._logger.info(
            "entity_invalidated", kind="release_group", id=group_id, removed=removed
        )
        return removed

    async def cache_release_group_releases(
        self, group_id: str, releases: list[Album], ttl: int | None = None
    ) -> None:
        """Replace the whole release list for *group_id* (no append)."""
        await self._write(
            f"{RELEASE_GROUP_PREFIX}{group_id}:releases", self._dump_album_list(releases), ttl
        )

    async def get_cached_release_group_releases(self, group_id: str) -> list[Album] | None:
        return await self._read_album_list(f"{RELEASE_GROUP_PREFIX}{group_id}:releases")

    # ------------------------------------------------------------------
    # Cover art URLs
    # ------------------------------------------------------------------

    async def cache_cover_art(self, release_id: str, url: str) -> None:
        await self._store.set_with_expiry(f"{COVER_PREFIX}{release_id}", url, self._ttl.cover_art)

    async def get_cached_cover_art(self, release_id: str) -> str | None:
        return await self._store.get(f"{COVER_PREFIX}{release_id}")

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def get_cache_stats(self) -> CacheStats:
        """Count live internal-id entries per kind by scanning key patterns."""
        albums = await self._store.list_keys(f"{ALBUM_PREFIX}*")
        artists = await self._store.list_keys(f"{ARTIST_PREFIX}*")
        groups = await self._store.list_keys(f"{RELEASE_GROUP_PREFIX}*")
        searches = await self._store.list_keys(f"{SEARCH_PREFIX}*")
        covers = await self._store.list_keys(f"{COVER_PREFIX}*")

        return CacheStats(
            albums=sum(1 for k in albums if _is_internal_id_key(k, ALBUM_PREFIX)),
            artists=sum(1 for k in artists if _is_internal_id_key(k, ARTIST_PREFIX)),
            release_groups=sum(
                1 for k in groups if _is_internal_id_key(k, RELEASE_GROUP_PREFIX)
            ),
            searches=len(searches),
            cover_art=len(covers),
        )

    # ------------------------------------------------------------------
    # Local full-text search
    # ------------------------------------------------------------------

    async def search_albums(self, query: str, limit: int = 50) -> list[Album]:
        """Fuzzy title search over cached albums, best match first.

        Returns ``[]`` when the store has no search support, the index is
        missing or the search fails, so callers fall through to upstream.
        Index hits whose album record has since expired are skipped.
        """
        try:
            keys = await self._store.search_hashes(
                ALBUM_INDEX_NAME, ALBUM_HASH_PREFIX, "title", query, limit
            )
            albums: list[Album] = []
            for key in keys:
                album = await self.get_cached_album(key[len(ALBUM_HASH_PREFIX):])
                if album is not None:
                    albums.append(album)
        except StoreUnavailableError as exc:
            self._logger.info("local_album_search_unavailable", query=query, error=str(exc))
            return []

        self._logger.debug("local_album_search", query=query, hits=len(albums))
        return albums
