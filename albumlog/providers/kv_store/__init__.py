"""Key-value store providers.

RedisKeyValueStore is the production backend: one shared connection pool,
optional RediSearch index for album titles.  MemoryKeyValueStore keeps
everything in-process with per-key expiry and is used for local
development (``KV_BACKEND=memory``) and as the store double in tests.
"""

from albumlog.providers.kv_store.memory_store import MemoryKeyValueStore
from albumlog.providers.kv_store.redis_store import RedisKeyValueStore

__all__ = ["MemoryKeyValueStore", "RedisKeyValueStore"]
