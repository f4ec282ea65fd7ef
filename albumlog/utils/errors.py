"""Custom exception hierarchy for albumlog.

All application exceptions inherit from :class:`AlbumLogError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "musicbrainz", "redis", "coverartarchive") caused
the failure.

The hierarchy separates the failure modes callers need to tell apart:

    AlbumLogError  (base -- catch-all for any albumlog error)
    +-- UpstreamUnavailableError  (metadata provider down / non-2xx reply)
    |   +-- MalformedResponseError  (unparseable JSON / missing fields)
    +-- StoreUnavailableError     (key-value store connection failure)
    |   +-- SearchUnsupportedError  (store has no full-text index support)
    +-- InvalidInputError         (caller-supplied value rejected)
    +-- ConfigurationError        (startup / missing config)

"Not found" is deliberately NOT part of this hierarchy: a missing record
is returned as ``None`` (or an empty list) at every layer, so an exception
always means "could not answer" rather than "the answer is nothing".
"""


class AlbumLogError(Exception):
    """Base exception for all albumlog errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[musicbrainz] HTTP 503``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Upstream metadata provider errors
# ---------------------------------------------------------------------------

class UpstreamUnavailableError(AlbumLogError):
    """Raised when the metadata provider is unreachable or replies non-2xx.

    Single-record lookups propagate this so callers can choose between
    retrying and giving up.  Composite operations (search, batch cover
    art) catch it per item and degrade instead.
    """

    def __init__(
        self,
        message: str = "Upstream metadata provider is unavailable",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status_code = status_code


class MalformedResponseError(UpstreamUnavailableError):
    """Raised when a provider response cannot be parsed or lacks required fields."""

    def __init__(
        self,
        message: str = "Upstream response was malformed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Key-value store errors
# ---------------------------------------------------------------------------

class StoreUnavailableError(AlbumLogError):
    """Raised when the key-value store connection fails.

    Reads are treated as cache misses by the orchestrating services;
    writes let this propagate.
    """

    def __init__(
        self,
        message: str = "Key-value store is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SearchUnsupportedError(StoreUnavailableError):
    """Raised by stores that cannot execute full-text hash searches."""

    def __init__(
        self,
        message: str = "Full-text search is not supported by this store",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Caller input / configuration errors
# ---------------------------------------------------------------------------

class InvalidInputError(AlbumLogError):
    """Raised when a caller-supplied value (query, limit, date, rating) is rejected."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(AlbumLogError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
