"""Utility modules for albumlog.

- **errors** -- Domain exception hierarchy rooted at AlbumLogError; separates
  "upstream unavailable", "store unavailable" and "invalid input" so callers
  never have to parse messages.
- **concurrency** -- Fan-out helpers with per-item failure isolation used for
  batch cover-art resolution.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **rate_limiter** -- Process-wide sliding-window limiter for MusicBrainz.
- **text_normalizer** -- Search-query normalization and search-term escaping.
"""

from albumlog.utils.concurrency import gather_mapping, throttled_gather
from albumlog.utils.errors import (
    AlbumLogError,
    ConfigurationError,
    InvalidInputError,
    MalformedResponseError,
    SearchUnsupportedError,
    StoreUnavailableError,
    UpstreamUnavailableError,
)
from albumlog.utils.logging import configure_logging, get_logger
from albumlog.utils.rate_limiter import (
    RateLimiterConfig,
    SlidingWindowRateLimiter,
    get_musicbrainz_limiter,
)
from albumlog.utils.text_normalizer import escape_search_term, normalize_query

__all__ = [
    "AlbumLogError",
    "ConfigurationError",
    "InvalidInputError",
    "MalformedResponseError",
    "RateLimiterConfig",
    "SearchUnsupportedError",
    "SlidingWindowRateLimiter",
    "StoreUnavailableError",
    "UpstreamUnavailableError",
    "configure_logging",
    "escape_search_term",
    "gather_mapping",
    "get_logger",
    "get_musicbrainz_limiter",
    "normalize_query",
    "throttled_gather",
]
