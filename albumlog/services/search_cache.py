"""Query-result cache.

Stores a whole :class:`~albumlog.models.entities.SearchResult` under the
normalized query text with a short TTL.  Entries are never invalidated
when the underlying entities change; stale results simply age out.
"""

from __future__ import annotations

from urllib.parse import quote

import structlog
from pydantic import ValidationError

from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.models.entities import SearchResult
from albumlog.services.entity_cache import SEARCH_PREFIX, TTLPolicy
from albumlog.utils.logging import get_logger
from albumlog.utils.text_normalizer import normalize_query


class SearchResultCache:
    """Cache of search results keyed by ``search:<quoted normalized query>``."""

    def __init__(self, store: IKeyValueStore, ttl: TTLPolicy | None = None) -> None:
        self._store = store
        self._ttl_seconds = (ttl or TTLPolicy()).search
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @staticmethod
    def normalize_query(query: str) -> str:
        return normalize_query(query)

    @staticmethod
    def key_for(query: str) -> str:
        return f"{SEARCH_PREFIX}{quote(normalize_query(query), safe='')}"

    async def cache_results(self, query: str, result: SearchResult) -> None:
        await self._store.set_with_expiry(self.key_for(query), result.to_json(), self._ttl_seconds)
        self._logger.debug("search_results_cached", query=normalize_query(query))

    async def get_cached_results(self, query: str) -> SearchResult | None:
        key = self.key_for(query)
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return SearchResult.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.warning("cached_record_malformed", key=key, error=str(exc))
            return None

    async def clear(self) -> int:
        """Delete every cached search result; return how many were removed."""
        removed = 0
        for key in await self._store.list_keys(f"{SEARCH_PREFIX}*"):
            if await self._store.delete(key):
                removed += 1
        self._logger.info("search_cache_cleared", removed=removed)
        return removed
