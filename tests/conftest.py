"""Shared pytest fixtures for the albumlog test suite."""

from __future__ import annotations

import pytest

from albumlog.models.entities import Album, Artist, ReleaseGroup
from albumlog.providers.kv_store.memory_store import MemoryKeyValueStore
from albumlog.services.entity_cache import EntityCache, TTLPolicy
from albumlog.utils.rate_limiter import RateLimiterConfig, SlidingWindowRateLimiter


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Store and cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryKeyValueStore:
    """In-memory store whose expiry follows the fake clock."""
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def ttl_policy() -> TTLPolicy:
    return TTLPolicy(entity=86400, search=14400, cover_art=604800)


@pytest.fixture
def entity_cache(memory_store: MemoryKeyValueStore, ttl_policy: TTLPolicy) -> EntityCache:
    return EntityCache(memory_store, ttl_policy)


@pytest.fixture
def limiter(clock: FakeClock) -> SlidingWindowRateLimiter:
    """Rate limiter whose sleeps advance the fake clock instead of waiting."""

    async def _sleep(seconds: float) -> None:
        clock.advance(seconds)

    return SlidingWindowRateLimiter(
        RateLimiterConfig(burst_limit=5, window_seconds=1.0, min_interval_seconds=0.1),
        clock=clock,
        sleep=_sleep,
        name="test",
    )


# ---------------------------------------------------------------------------
# Sample records
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_album() -> Album:
    return Album(
        id="b84ee12a-09ef-421b-82de-0441a926375b",
        title="Abbey Road",
        artist_name="The Beatles",
        artist_id="b10bbbfc-cf9e-42e0-be17-e2c3e1d2600d",
        release_date="1969-09-26",
        cover_art_url="/album-art/b84ee12a-09ef-421b-82de-0441a926375b.jpg",
        release_group_id="9162580e-5df4-32de-80cc-f45a8d8a9b1d",
    )


@pytest.fixture
def other_album() -> Album:
    return Album(
        id="2c0b1b8b-8a7a-4fbb-a8c4-8b1c1ef0a6a2",
        title="Let It Be",
        artist_name="The Beatles",
        artist_id="b10bbbfc-cf9e-42e0-be17-e2c3e1d2600d",
        release_date="1970-05-08",
    )


@pytest.fixture
def sample_artist() -> Artist:
    return Artist(
        id="b10bbbfc-cf9e-42e0-be17-e2c3e1d2600d",
        name="The Beatles",
        country="GB",
        disambiguation="UK rock band",
    )


@pytest.fixture
def sample_release_group() -> ReleaseGroup:
    return ReleaseGroup(
        id="9162580e-5df4-32de-80cc-f45a8d8a9b1d",
        title="Abbey Road",
        artist_name="The Beatles",
        artist_id="b10bbbfc-cf9e-42e0-be17-e2c3e1d2600d",
        type="Album",
        first_release_date="1969-09-26",
    )
