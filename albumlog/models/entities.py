"""Core music entities cached by albumlog.

Defines Pydantic v2 models for albums, tracks, artists, release groups and
the aggregate search result.  All models are frozen: a cached record is
only ever replaced wholesale, never patched field by field.

Records are serialised with camelCase aliases (``artistName``,
``releaseGroupId`` ...) so that JSON written to the key-value store keeps
the same shape no matter which process wrote it.  Parsing accepts either
the alias or the Python field name.

Key relationships:
    - Album.release_group_id points at a ReleaseGroup (not enforced)
    - Album.artist_id / ReleaseGroup.artist_id point at an Artist
    - SearchResult groups Album and Artist lists for one query
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Release-group primary types the daily-album log cares about.  Anything
# else (Single, Broadcast, Other) is filtered by callers.
RELEVANT_RELEASE_GROUP_TYPES: frozenset[str] = frozenset({"Album", "EP"})


class _CachedRecord(BaseModel):
    """Shared configuration for every record stored in the cache."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        """Serialise with camelCase aliases, omitting unset optional fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class Track(_CachedRecord):
    """A single track on an album's track list."""

    id: str
    title: str
    position: int | None = None        # 1-based position on its medium
    length_ms: int | None = None       # Track length in milliseconds


class Album(_CachedRecord):
    """An album as the user picks it for a day.

    ``id`` is usually the MusicBrainz release id.  When a release group has
    no resolvable releases the album is synthesised from the group and
    ``id`` is the release-group id instead.
    """

    id: str
    title: str
    artist_name: str
    artist_id: str
    release_date: str | None = None     # "YYYY", "YYYY-MM" or "YYYY-MM-DD"
    cover_art_url: str | None = None    # External URL or local public path
    tracks: list[Track] | None = None
    release_group_id: str | None = None


class Artist(_CachedRecord):
    """A performing artist."""

    id: str
    name: str
    country: str | None = None
    disambiguation: str | None = None


class ReleaseGroup(_CachedRecord):
    """A provider-side grouping of releases representing one conceptual album."""

    id: str
    title: str
    artist_name: str = Field(alias="artist")
    artist_id: str
    type: str | None = None
    first_release_date: str | None = None

    def is_relevant_type(self) -> bool:
        """Return ``True`` for Album / EP groups."""
        return self.type in RELEVANT_RELEASE_GROUP_TYPES


class SearchResult(_CachedRecord):
    """Transient aggregate returned by a search.

    Cached wholesale under the normalized query text; it is never
    invalidated when the underlying entities change.
    """

    albums: list[Album] = Field(default_factory=list)
    artists: list[Artist] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def empty(cls) -> SearchResult:
        return cls()

    def is_empty(self) -> bool:
        return not self.albums and not self.artists

    def limited(self, limit: int) -> SearchResult:
        """Return a copy with both lists truncated to *limit* entries."""
        return SearchResult(
            albums=self.albums[:limit],
            artists=self.artists[:limit],
            total=self.total,
        )


class CacheStats(BaseModel):
    """Live key counts per cached kind.  Diagnostic only."""

    model_config = ConfigDict(frozen=True)

    albums: int = 0
    artists: int = 0
    release_groups: int = 0
    searches: int = 0
    cover_art: int = 0
