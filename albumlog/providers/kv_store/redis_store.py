"""Redis-backed key-value store using ``redis.asyncio``.

One client (and its connection pool) is created at startup and shared by
every cache.  Responses are decoded to ``str`` by the client.  Every
``redis.RedisError`` is re-raised as
:class:`~albumlog.utils.errors.StoreUnavailableError` so callers only ever
deal with the albumlog error hierarchy.

Full-text search over hashes uses the RediSearch module (``FT.CREATE`` /
``FT.SEARCH``).  Indexes are created lazily the first time they are
queried.  Servers without the module raise ``SearchUnsupportedError``.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError, ResponseError

from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.utils.errors import SearchUnsupportedError, StoreUnavailableError
from albumlog.utils.logging import get_logger
from albumlog.utils.text_normalizer import escape_search_term

_PROVIDER = "redis"

logger = get_logger(__name__, provider=_PROVIDER)


@contextmanager
def _translate_errors(operation: str, key: str | None = None) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        logger.warning("kv_store_error", operation=operation, key=key, error=str(exc))
        raise StoreUnavailableError(
            f"Redis {operation} failed: {exc}", provider_name=_PROVIDER
        ) from exc


def _fuzzy_query(field: str, term: str) -> str:
    """Build ``@field:(%word% %word%)`` with every word escaped."""
    words = [escape_search_term(w) for w in term.split()]
    return f"@{field}:({' '.join(f'%{w}%' for w in words)})"


class RedisKeyValueStore(IKeyValueStore):
    """Key-value store over a shared ``redis.asyncio.Redis`` client.

    Parameters
    ----------
    client:
        A client created with ``decode_responses=True``.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client
        self._ready_indexes: set[str] = set()

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        """Create a store with its own connection pool for *url*."""
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        with _translate_errors("get", key):
            return await self._client.get(key)

    async def set(self, key: str, value: str) -> None:
        with _translate_errors("set", key):
            await self._client.set(key, value)

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        with _translate_errors("set_with_expiry", key):
            await self._client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> bool:
        with _translate_errors("delete", key):
            return await self._client.delete(key) > 0

    async def list_keys(self, pattern: str) -> list[str]:
        with _translate_errors("list_keys", pattern):
            keys = [key async for key in self._client.scan_iter(match=pattern, count=500)]
        # SCAN may return a key more than once.
        return sorted(set(keys))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        with _translate_errors("expire", key):
            return bool(await self._client.expire(key, ttl_seconds))

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    async def hash_get(self, key: str, field: str) -> str | None:
        with _translate_errors("hash_get", key):
            return await self._client.hget(key, field)

    async def hash_set(self, key: str, mapping: dict[str, str]) -> None:
        with _translate_errors("hash_set", key):
            await self._client.hset(key, mapping=mapping)

    async def hash_get_all(self, key: str) -> dict[str, str]:
        with _translate_errors("hash_get_all", key):
            return await self._client.hgetall(key) or {}

    # ------------------------------------------------------------------
    # Full-text search (RediSearch)
    # ------------------------------------------------------------------

    async def _ensure_index(self, index_name: str, prefix: str, field: str) -> None:
        if index_name in self._ready_indexes:
            return
        try:
            await self._client.execute_command(
                "FT.CREATE", index_name,
                "ON", "HASH",
                "PREFIX", 1, prefix,
                "SCHEMA", field, "TEXT",
            )
            logger.info("search_index_created", index=index_name, prefix=prefix)
        except ResponseError as exc:
            message = str(exc).lower()
            if "already exists" in message:
                pass
            elif "unknown command" in message:
                raise SearchUnsupportedError(
                    "RediSearch module is not loaded", provider_name=_PROVIDER
                ) from exc
            else:
                raise StoreUnavailableError(
                    f"Cannot create index {index_name}: {exc}", provider_name=_PROVIDER
                ) from exc
        except RedisError as exc:
            raise StoreUnavailableError(
                f"Cannot create index {index_name}: {exc}", provider_name=_PROVIDER
            ) from exc
        self._ready_indexes.add(index_name)

    async def search_hashes(
        self,
        index_name: str,
        prefix: str,
        field: str,
        term: str,
        limit: int,
    ) -> list[str]:
        """Fuzzy-match *term* against *field* and return keys, best score first."""
        if not term.split():
            return []
        await self._ensure_index(index_name, prefix, field)

        with _translate_errors("search_hashes", index_name):
            reply = await self._client.execute_command(
                "FT.SEARCH", index_name, _fuzzy_query(field, term),
                "NOCONTENT", "WITHSCORES",
                "LIMIT", 0, limit,
            )

        # Reply layout: [total, key1, score1, key2, score2, ...]
        pairs = list(zip(reply[1::2], reply[2::2]))
        pairs.sort(key=lambda pair: (-float(pair[1]), pair[0]))
        return [key for key, _ in pairs]

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        with _translate_errors("ping"):
            return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()

    def get_provider_name(self) -> str:
        return _PROVIDER
