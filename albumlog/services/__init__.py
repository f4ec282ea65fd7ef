"""Caches and orchestration services.

Everything here works against the interfaces in :mod:`albumlog.interfaces`
and receives its collaborators through the constructor:

- **EntityCache** -- owner of every cached album / artist / release-group
  record, addressable by internal id and by MusicBrainz id.
- **SearchResultCache** -- whole search results keyed by normalized query.
- **SearchService** -- query cache -> local title index -> upstream.
- **CatalogService** -- cache-aside lookups by id.
- **ListeningEntryStore** -- the per-user daily listening log.
"""

from albumlog.services.catalog_service import CatalogService
from albumlog.services.entity_cache import EntityCache, TTLPolicy
from albumlog.services.listening_entries import ListeningEntryStore
from albumlog.services.search_cache import SearchResultCache
from albumlog.services.search_service import SearchService

__all__ = [
    "CatalogService",
    "EntityCache",
    "ListeningEntryStore",
    "SearchResultCache",
    "SearchService",
    "TTLPolicy",
]
