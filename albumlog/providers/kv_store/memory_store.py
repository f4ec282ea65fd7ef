"""In-memory key-value store using cachetools.TLRUCache.

Fast, single-process store suitable for development and tests.  Unlike a
plain ``TTLCache`` every entry carries its own expiry, so it honours the
per-key TTLs the caches rely on.  The time source is injectable, which
lets tests move time forward without sleeping.

Full-text hash search is emulated with rapidfuzz partial-ratio scoring.
"""

from __future__ import annotations

import fnmatch
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from cachetools import TLRUCache

from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.utils.errors import StoreUnavailableError
from albumlog.utils.text_normalizer import title_match_score

logger = structlog.get_logger(logger_name=__name__)

# Minimum partial-ratio score for a title to count as a search hit.
_SEARCH_MIN_SCORE = 0.8


@dataclass
class _Entry:
    value: str | dict[str, str]
    ttl_seconds: float | None = None


def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
    if entry.ttl_seconds is None:
        return math.inf
    return now + entry.ttl_seconds


class MemoryKeyValueStore(IKeyValueStore):
    """Process-local key-value store with per-key expiry.

    Parameters
    ----------
    max_size:
        Maximum number of keys.  When full, the entry closest to expiry is
        evicted first.
    clock:
        Monotonic time source in seconds.
    """

    def __init__(
        self,
        max_size: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_size, ttu=_time_to_use, timer=clock
        )

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        if not isinstance(entry.value, str):
            raise StoreUnavailableError(
                f"WRONGTYPE value at {key!r} is a hash", provider_name="memory"
            )
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: str) -> None:
        self._cache[key] = _Entry(value)

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._cache[key] = _Entry(value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def list_keys(self, pattern: str) -> list[str]:
        self._cache.expire()
        return sorted(k for k in self._cache.keys() if fnmatch.fnmatchcase(k, pattern))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        entry = self._cache.get(key)
        if entry is None:
            return False
        if ttl_seconds <= 0:
            del self._cache[key]
            return True
        # Re-inserting recomputes the expiry time.
        self._cache[key] = _Entry(entry.value, ttl_seconds)
        return True

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    def _get_hash(self, key: str) -> dict[str, str] | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if not isinstance(entry.value, dict):
            raise StoreUnavailableError(
                f"WRONGTYPE value at {key!r} is a string", provider_name="memory"
            )
        return entry.value

    async def hash_get(self, key: str, field: str) -> str | None:
        data = self._get_hash(key)
        if data is None:
            return None
        return data.get(field)

    async def hash_set(self, key: str, mapping: dict[str, str]) -> None:
        data = self._get_hash(key)
        if data is None:
            self._cache[key] = _Entry(dict(mapping))
        else:
            # Updating in place keeps the existing expiry, as Redis HSET does.
            data.update(mapping)

    async def hash_get_all(self, key: str) -> dict[str, str]:
        data = self._get_hash(key)
        return dict(data) if data else {}

    async def search_hashes(
        self,
        index_name: str,
        prefix: str,
        field: str,
        term: str,
        limit: int,
    ) -> list[str]:
        """Score every hash under *prefix* with rapidfuzz and return the best keys."""
        self._cache.expire()
        scored: list[tuple[float, str]] = []
        for key in list(self._cache.keys()):
            if not key.startswith(prefix):
                continue
            entry = self._cache.get(key)
            if entry is None or not isinstance(entry.value, dict):
                continue
            score = title_match_score(term, entry.value.get(field, ""))
            if score >= _SEARCH_MIN_SCORE:
                scored.append((score, key))

        scored.sort(key=lambda item: (-item[0], item[1]))
        logger.debug("hash_search", index=index_name, term=term, hits=len(scored))
        return [key for _, key in scored[:limit]]

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._cache.clear()

    def get_provider_name(self) -> str:
        return "memory"
