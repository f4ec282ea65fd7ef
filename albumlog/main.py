"""albumlog wiring.

Constructs the shared store handle, the shared HTTP client and every
cache and service on top of them, injecting collaborators through
constructors.  The surrounding web application calls
:func:`build_services` once at startup and :meth:`Services.aclose` at
shutdown; nothing in albumlog holds a module-level connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from albumlog.config.loader import load_config
from albumlog.config.settings import Settings
from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.providers.artwork.filesystem_store import FilesystemArtworkStore
from albumlog.providers.kv_store.memory_store import MemoryKeyValueStore
from albumlog.providers.kv_store.redis_store import RedisKeyValueStore
from albumlog.providers.music_db.musicbrainz_client import MusicBrainzClient
from albumlog.services.catalog_service import CatalogService
from albumlog.services.entity_cache import EntityCache, TTLPolicy
from albumlog.services.listening_entries import ListeningEntryStore
from albumlog.services.search_cache import SearchResultCache
from albumlog.services.search_service import SearchService
from albumlog.utils.errors import ConfigurationError
from albumlog.utils.logging import configure_logging, get_logger
from albumlog.utils.rate_limiter import RateLimiterConfig, get_musicbrainz_limiter

_HTTP_TIMEOUT_SECONDS = 30.0

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass
class Services:
    """Every long-lived component, sharing one store and one HTTP client."""

    store: IKeyValueStore
    http_client: httpx.AsyncClient
    entity_cache: EntityCache
    search_cache: SearchResultCache
    musicbrainz: MusicBrainzClient
    artwork_store: FilesystemArtworkStore
    search: SearchService
    catalog: CatalogService
    listening: ListeningEntryStore

    async def aclose(self) -> None:
        """Close the HTTP client and the store connection."""
        await self.http_client.aclose()
        await self.store.close()
        _logger.info("services_closed")


# ---------------------------------------------------------------------------
# Component factories
# ---------------------------------------------------------------------------


def _build_kv_store(config: dict[str, Any]) -> IKeyValueStore:
    kv_config = config.get("kv_store", {})
    backend = kv_config.get("backend", "redis")
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore.from_url(kv_config.get("redis_url", "redis://localhost:6379"))
    raise ConfigurationError(f"Unknown key-value backend {backend!r}")


def _build_rate_limiter_config(config: dict[str, Any]) -> RateLimiterConfig:
    mb_limits = config.get("rate_limit", {}).get("musicbrainz", {})
    defaults = RateLimiterConfig()
    return RateLimiterConfig(
        burst_limit=int(mb_limits.get("burst_limit", defaults.burst_limit)),
        window_seconds=float(mb_limits.get("window_seconds", defaults.window_seconds)),
        min_interval_seconds=float(
            mb_limits.get("min_interval_seconds", defaults.min_interval_seconds)
        ),
    )


def build_services(
    settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    store: IKeyValueStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Services:
    """Construct and return all services with injected dependencies.

    Parameters
    ----------
    settings:
        Environment settings.  Read from the environment when omitted.
    config:
        Resolved configuration dict.  Loaded via :func:`load_config` when
        omitted.
    store, http_client:
        Pre-built shared handles, mainly for tests.
    """
    settings = settings or Settings()
    config = config if config is not None else load_config(settings=settings)
    app_env = config.get("app", {}).get("env", settings.app_env)
    configure_logging(
        log_level=config.get("logging", {}).get("level", settings.log_level),
        app_env=app_env,
    )
    user_agent = config.get("music_db", {}).get("user_agent") or settings.user_agent()

    store = store or _build_kv_store(config)
    http_client = http_client or httpx.AsyncClient(timeout=_HTTP_TIMEOUT_SECONDS)
    ttl = TTLPolicy.from_config(config)

    entity_cache = EntityCache(store, ttl)
    search_cache = SearchResultCache(store, ttl)

    artwork_config = config.get("artwork", {})
    artwork_store = FilesystemArtworkStore(
        http_client,
        artwork_dir=artwork_config.get("dir", settings.artwork_dir),
        public_prefix=artwork_config.get("public_prefix", settings.artwork_public_prefix),
        user_agent=user_agent,
    )

    musicbrainz = MusicBrainzClient(
        http_client,
        entity_cache,
        artwork_store=artwork_store,
        limiter=get_musicbrainz_limiter(_build_rate_limiter_config(config)),
        user_agent=user_agent,
        cover_art_concurrency=int(config.get("cover_art", {}).get("max_concurrency", 5)),
    )

    search_config = config.get("search", {})
    search = SearchService(
        search_cache,
        entity_cache,
        musicbrainz,
        upstream_limit=int(search_config.get("upstream_limit", 10)),
        max_limit=int(search_config.get("max_limit", 50)),
        default_limit=int(search_config.get("default_limit", 50)),
    )

    _logger.info(
        "services_built",
        kv_backend=store.get_provider_name(),
        environment=app_env,
        entity_ttl=ttl.entity,
        search_ttl=ttl.search,
    )

    return Services(
        store=store,
        http_client=http_client,
        entity_cache=entity_cache,
        search_cache=search_cache,
        musicbrainz=musicbrainz,
        artwork_store=artwork_store,
        search=search,
        catalog=CatalogService(entity_cache, musicbrainz),
        listening=ListeningEntryStore(store, entity_cache),
    )
