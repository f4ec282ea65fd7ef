"""Search orchestration: query cache -> local title index -> upstream.

Architecture role: **entry point for every album search**
----------------------------------------------------------
A query is answered by the first layer that has something for it:

  1. CACHE     -- the query-result cache, keyed by the normalized query.
  2. LOCAL     -- fuzzy title search over albums already in the entity
                  cache (needs a store with full-text search).
  3. UPSTREAM  -- the metadata provider, which writes every album it
                  resolves into the entity cache as a side effect.

Only upstream answers are written back to the query-result cache, and
only when they are non-empty.  Store read failures count as misses at
every layer; a store write failure propagates.
"""

from __future__ import annotations

import structlog

from albumlog.interfaces.metadata_provider import IMusicMetadataProvider
from albumlog.models.entities import SearchResult
from albumlog.models.responses import SearchResponse
from albumlog.services.entity_cache import EntityCache
from albumlog.services.search_cache import SearchResultCache
from albumlog.utils.errors import ConfigurationError, InvalidInputError, StoreUnavailableError
from albumlog.utils.logging import get_logger

MAX_SEARCH_LIMIT = 50


class SearchService:
    """Cache-aside album search.

    Parameters
    ----------
    search_cache:
        Query-result cache.
    entity_cache:
        Entity cache providing the local title index.
    provider:
        Upstream metadata provider.
    upstream_limit:
        Maximum release groups requested upstream per query.  Each group
        costs further upstream requests, so this stays small.
    max_limit:
        Largest accepted ``limit``.
    default_limit:
        ``limit`` used when the caller passes none.  Must not exceed
        ``max_limit``.
    """

    def __init__(
        self,
        search_cache: SearchResultCache,
        entity_cache: EntityCache,
        provider: IMusicMetadataProvider,
        upstream_limit: int = 10,
        max_limit: int = MAX_SEARCH_LIMIT,
        default_limit: int = MAX_SEARCH_LIMIT,
    ) -> None:
        if not 1 <= default_limit <= max_limit:
            raise ConfigurationError(
                f"default_limit must be between 1 and max_limit ({max_limit})"
            )
        self._search_cache = search_cache
        self._entity_cache = entity_cache
        self._provider = provider
        self._upstream_limit = upstream_limit
        self._max_limit = max_limit
        self._default_limit = default_limit
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def _validate(self, query: str, limit: int) -> None:
        if not isinstance(query, str) or not query.strip():
            raise InvalidInputError("Search query is required and cannot be empty")
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise InvalidInputError("Limit must be an integer")
        if not 1 <= limit <= self._max_limit:
            raise InvalidInputError(f"Limit must be between 1 and {self._max_limit}")

    async def search(self, query: str, limit: int | None = None) -> SearchResponse:
        """Answer *query* from the first layer that has results.

        *limit* defaults to the configured ``default_limit``.

        Raises
        ------
        InvalidInputError
            If *query* is blank or *limit* is outside 1..max_limit.
        StoreUnavailableError
            If caching the upstream result fails.
        """
        if limit is None:
            limit = self._default_limit
        self._validate(query, limit)

        try:
            cached = await self._search_cache.get_cached_results(query)
        except StoreUnavailableError as exc:
            self._logger.warning("search_cache_read_failed", query=query, error=str(exc))
            cached = None
        if cached is not None and not cached.is_empty():
            self._logger.debug("search_cache_hit", query=query)
            return SearchResponse(results=cached.limited(limit), source="cache")

        local = await self._entity_cache.search_albums(query, limit)
        if local:
            self._logger.debug("search_local_hit", query=query, albums=len(local))
            return SearchResponse(
                results=SearchResult(albums=local, total=len(local)),
                source="local",
            )

        upstream = await self._provider.search(query, min(limit, self._upstream_limit))
        if not upstream.is_empty():
            await self._search_cache.cache_results(query, upstream)
        self._logger.info(
            "search_upstream",
            query=query,
            albums=len(upstream.albums),
            artists=len(upstream.artists),
        )
        return SearchResponse(results=upstream.limited(limit), source="upstream")
