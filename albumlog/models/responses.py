"""Return types of the orchestration services.

These wrap cached records with provenance flags so callers can tell a
cache hit from an upstream fetch without inspecting logs.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from albumlog.models.entities import Album, Artist, SearchResult

SearchSource = Literal["cache", "local", "upstream"]


class SearchResponse(BaseModel):
    """Search results plus the layer that answered them."""

    model_config = ConfigDict(frozen=True)

    results: SearchResult
    source: SearchSource


class AlbumLookup(BaseModel):
    model_config = ConfigDict(frozen=True)

    album: Album
    cached: bool


class ArtistLookup(BaseModel):
    model_config = ConfigDict(frozen=True)

    artist: Artist
    cached: bool
    albums: list[Album] | None = None
    albums_cached: bool = False
