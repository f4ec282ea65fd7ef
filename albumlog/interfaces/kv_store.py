"""Abstract base class for the key-value store adapter.

Every cache in albumlog talks to storage exclusively through this
contract.  Implementations exist for Redis (production) and an in-process
TTL cache (development and tests).  The store handle is constructed once
and injected into each component; there is no global connection.

All operations are async.  A transport failure is raised as
:class:`~albumlog.utils.errors.StoreUnavailableError`; callers never
retry.  There are no transactions: writing two keys for one logical
record is two independent operations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from albumlog.utils.errors import SearchUnsupportedError


class IKeyValueStore(ABC):
    """Contract for string key-value storage with hashes and per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the string stored under *key*, or ``None`` if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key* with no expiry, replacing any previous value."""

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store *value* under *key*, expiring after *ttl_seconds*.

        Parameters
        ----------
        key:
            The key to write.
        value:
            The serialised value.
        ttl_seconds:
            Time-to-live in whole seconds; must be positive.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove *key*.

        Returns
        -------
        bool
            ``True`` if the key existed.
        """

    @abstractmethod
    async def list_keys(self, pattern: str) -> list[str]:
        """Return every live key matching the glob *pattern* (``*``, ``?``)."""

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a time-to-live on an existing key.

        Returns
        -------
        bool
            ``False`` if the key does not exist.
        """

    @abstractmethod
    async def hash_get(self, key: str, field: str) -> str | None:
        """Return one field of the hash at *key*, or ``None``."""

    @abstractmethod
    async def hash_set(self, key: str, mapping: dict[str, str]) -> None:
        """Write the given fields into the hash at *key* (other fields are kept)."""

    @abstractmethod
    async def hash_get_all(self, key: str) -> dict[str, str]:
        """Return every field of the hash at *key*; an empty dict when absent."""

    async def search_hashes(
        self,
        index_name: str,
        prefix: str,
        field: str,
        term: str,
        limit: int,
    ) -> list[str]:
        """Full-text search over hashes whose keys start with *prefix*.

        Optional capability.  Implementations that support it return the
        matching hash keys in relevance order, ties broken by key order.

        Parameters
        ----------
        index_name:
            Name of the search index (created on demand by the implementation).
        prefix:
            Key prefix of the hashes covered by the index.
        field:
            Text field matched against *term*.
        term:
            User search text; fuzzy substring matching is applied.
        limit:
            Maximum number of keys to return.

        Raises
        ------
        SearchUnsupportedError
            If the store has no full-text search capability.
        """
        raise SearchUnsupportedError(provider_name=self.get_provider_name())

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the store answers; raise on connection failure."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for log events (e.g. ``"redis"``)."""
