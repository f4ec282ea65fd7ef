"""Pydantic data models for albumlog.

``entities`` holds the cached music records (Album, Artist, ReleaseGroup,
SearchResult); ``listening`` holds the per-user daily listening log;
``responses`` holds the provenance-carrying service return types.
"""

from albumlog.models.entities import (
    RELEVANT_RELEASE_GROUP_TYPES,
    Album,
    Artist,
    CacheStats,
    ReleaseGroup,
    SearchResult,
    Track,
)
from albumlog.models.listening import (
    CalendarListeningEntry,
    ListeningEntry,
    ListeningEntryWithAlbum,
)
from albumlog.models.responses import AlbumLookup, ArtistLookup, SearchResponse

__all__ = [
    "RELEVANT_RELEASE_GROUP_TYPES",
    "Album",
    "AlbumLookup",
    "Artist",
    "ArtistLookup",
    "CacheStats",
    "CalendarListeningEntry",
    "ListeningEntry",
    "ListeningEntryWithAlbum",
    "ReleaseGroup",
    "SearchResponse",
    "SearchResult",
    "Track",
]
