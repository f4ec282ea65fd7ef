"""Unit tests for MusicBrainzClient, driven through httpx.MockTransport."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from albumlog.interfaces.artwork_store import IArtworkStore
from albumlog.models.entities import Album
from albumlog.providers.music_db.musicbrainz_client import MusicBrainzClient
from albumlog.services.entity_cache import EntityCache
from albumlog.utils.errors import MalformedResponseError, UpstreamUnavailableError

MB = "musicbrainz.org"
CAA = "coverartarchive.org"
USER_AGENT = "AlbumLogTest/1.0 ( test@example.com )"


class _Router:
    """Maps (host, path) to canned responses and records every request."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, host: str, path: str, status: int = 200, json: Any = None,
            content: bytes | None = None, headers: dict | None = None) -> None:
        def _respond() -> httpx.Response:
            if json is not None:
                return httpx.Response(status, json=json, headers=headers)
            return httpx.Response(status, content=content or b"", headers=headers)
        self.routes[(host, path)] = _respond

    def fail(self, host: str, path: str) -> None:
        def _raise() -> httpx.Response:
            raise httpx.ConnectError("connection refused")
        self.routes[(host, path)] = _raise

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.url.host, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not Found"})
        return route()

    def paths(self, host: str) -> list[str]:
        return [r.url.path for r in self.requests if r.url.host == host]


class _FakeArtworkStore(IArtworkStore):
    def __init__(self, existing: set[str] | None = None, save_ok: bool = True) -> None:
        self.existing = existing or set()
        self.save_ok = save_ok
        self.saved: list[tuple[str, str]] = []

    async def save(self, release_id: str, source_url: str) -> str | None:
        self.saved.append((release_id, source_url))
        return self.public_url(release_id) if self.save_ok else None

    async def exists(self, release_id: str, extension: str = ".jpg") -> bool:
        return extension == ".jpg" and release_id in self.existing

    def public_url(self, release_id: str, extension: str = ".jpg") -> str:
        return f"/album-art/{release_id}{extension}"


def _credit(name: str = "The Beatles", artist_id: str = "a1") -> list[dict]:
    return [{"name": name, "artist": {"id": artist_id, "name": name}}]


def _caa_images(front: bool = True, thumb: bool = True) -> dict:
    image: dict[str, Any] = {
        "front": front,
        "image": "https://coverartarchive.org/release/x/full.jpg",
    }
    if thumb:
        image["thumbnails"] = {"500": "https://coverartarchive.org/release/x/500.jpg"}
    return {"images": [image]}


@pytest.fixture()
def router() -> _Router:
    return _Router()


@pytest.fixture()
def http_client(router: _Router) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(router))


@pytest.fixture()
def client(http_client, entity_cache: EntityCache, limiter) -> MusicBrainzClient:
    return MusicBrainzClient(http_client, entity_cache, limiter=limiter, user_agent=USER_AGENT)


# ======================================================================
# Request plumbing
# ======================================================================


class TestRequests:
    @pytest.mark.asyncio
    async def test_requests_carry_identification_headers(self, client, router) -> None:
        router.add(MB, "/ws/2/artist/a1", json={"id": "a1", "name": "The Beatles"})

        await client.get_artist("a1")

        request = router.requests[0]
        assert request.headers["User-Agent"] == USER_AGENT
        assert request.headers["Accept"] == "application/json"
        assert request.url.params["fmt"] == "json"

    @pytest.mark.asyncio
    async def test_musicbrainz_requests_go_through_limiter(
        self, http_client, entity_cache, router
    ) -> None:
        limiter = MagicMock()
        limiter.acquire = AsyncMock()
        client = MusicBrainzClient(http_client, entity_cache, limiter=limiter)
        router.add(MB, "/ws/2/artist/a1", json={"id": "a1", "name": "X"})
        router.add(CAA, "/release/r1", json=_caa_images())

        await client.get_artist("a1")
        await client.get_cover_art_url("r1")

        assert limiter.acquire.await_count == 1

    def test_provider_name(self, client) -> None:
        assert client.get_provider_name() == "musicbrainz"


# ======================================================================
# Direct fetches
# ======================================================================


class TestDirectFetches:
    @pytest.mark.asyncio
    async def test_get_release_maps_tracks_and_cover(self, client, router) -> None:
        router.add(
            MB,
            "/ws/2/release/r1",
            json={
                "id": "r1",
                "title": "Abbey Road",
                "date": "1969-09-26",
                "artist-credit": _credit(),
                "release-group": {"id": "rg1"},
                "media": [
                    {"tracks": [
                        {"id": "t1", "title": "Come Together", "position": 1, "length": 259000},
                        {"id": "t2", "title": "Something", "position": 2, "length": None},
                    ]}
                ],
            },
        )
        router.add(CAA, "/release/r1", json=_caa_images())

        album = await client.get_release("r1")

        assert album is not None
        assert album.artist_name == "The Beatles"
        assert album.release_group_id == "rg1"
        assert [t.title for t in album.tracks] == ["Come Together", "Something"]
        assert album.tracks[0].length_ms == 259000
        assert album.cover_art_url == "https://coverartarchive.org/release/x/500.jpg"

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self, client, router) -> None:
        assert await client.get_release("missing") is None
        assert await client.get_artist("missing") is None
        assert await client.get_release_group("missing") is None
        assert await client.get_artist_releases("missing") == []
        assert await client.get_release_group_releases("missing") == []

    @pytest.mark.asyncio
    async def test_server_error_raises_upstream_unavailable(self, client, router) -> None:
        router.add(MB, "/ws/2/release/r1", status=503, content=b"busy")
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await client.get_release("r1")
        assert exc_info.value.status_code == 503
        assert exc_info.value.provider_name == "musicbrainz"

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream_unavailable(self, client, router) -> None:
        router.fail(MB, "/ws/2/artist/a1")
        with pytest.raises(UpstreamUnavailableError):
            await client.get_artist("a1")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_malformed(self, client, router) -> None:
        router.add(MB, "/ws/2/artist/a1", content=b"<html>oops</html>")
        with pytest.raises(MalformedResponseError):
            await client.get_artist("a1")

    @pytest.mark.asyncio
    async def test_missing_fields_raise_malformed(self, client, router) -> None:
        router.add(MB, "/ws/2/release/r1", json={"id": "r1", "title": "No credit"})
        router.add(MB, "/ws/2/artist/a1", json={"id": "a1"})

        with pytest.raises(MalformedResponseError):
            await client.get_release("r1")
        with pytest.raises(MalformedResponseError):
            await client.get_artist("a1")

    @pytest.mark.asyncio
    async def test_wrongly_typed_fields_raise_malformed(self, client, router) -> None:
        router.add(
            MB,
            "/ws/2/release/r1",
            json={"id": "r1", "title": "AR", "artist-credit": [{"name": "X", "artist": "a1"}]},
        )
        router.add(
            MB,
            "/ws/2/release/r2",
            json={"id": "r2", "title": "AR", "date": 1969, "artist-credit": _credit()},
        )
        router.add(MB, "/ws/2/release-group/rg1", json={"id": "rg1", "releases": {"id": "r1"}})

        with pytest.raises(MalformedResponseError):
            await client.get_release("r1")
        with pytest.raises(MalformedResponseError):
            await client.get_release("r2")
        with pytest.raises(MalformedResponseError):
            await client.get_release_group_releases("rg1")

    @pytest.mark.asyncio
    async def test_get_release_group(self, client, router) -> None:
        router.add(
            MB,
            "/ws/2/release-group/rg1",
            json={
                "id": "rg1",
                "title": "Abbey Road",
                "primary-type": "Album",
                "first-release-date": "1969-09-26",
                "artist-credit": _credit(),
            },
        )
        group = await client.get_release_group("rg1")
        assert group.artist_name == "The Beatles"
        assert group.type == "Album"
        assert group.first_release_date == "1969-09-26"

    @pytest.mark.asyncio
    async def test_release_group_releases_sorted_earliest_first(self, client, router) -> None:
        router.add(
            MB,
            "/ws/2/release-group/rg1",
            json={
                "id": "rg1",
                "title": "Abbey Road",
                "releases": [
                    {"id": "undated", "title": "Abbey Road"},
                    {"id": "late", "title": "Abbey Road", "date": "2019-09-27"},
                    {"id": "early", "title": "Abbey Road", "date": "1969-09-26"},
                ],
            },
        )

        albums = await client.get_release_group_releases("rg1", limit=5, artist_name="The Beatles",
                                                          artist_id="a1")

        assert [a.id for a in albums] == ["early", "late", "undated"]
        assert all(a.release_group_id == "rg1" for a in albums)
        assert all(a.artist_id == "a1" for a in albums)

    @pytest.mark.asyncio
    async def test_release_group_releases_fall_back_to_group_identity(
        self, client, router
    ) -> None:
        router.add(
            MB,
            "/ws/2/release-group/rg1",
            json={"id": "rg1", "title": "Abbey Road", "releases": [{"id": "r1", "title": "AR"}]},
        )
        albums = await client.get_release_group_releases("rg1", limit=1)
        assert albums[0].artist_name == "Abbey Road"
        assert albums[0].artist_id == "rg1"

    @pytest.mark.asyncio
    async def test_get_artist_releases_skips_uncredited(self, client, router) -> None:
        router.add(
            MB,
            "/ws/2/release/",
            json={
                "releases": [
                    {"id": "r1", "title": "One", "artist-credit": _credit()},
                    {"id": "r2", "title": "Two"},
                ]
            },
        )
        albums = await client.get_artist_releases("a1", limit=10)
        assert [a.id for a in albums] == ["r1"]
        request = router.requests[0]
        assert request.url.params["artist"] == "a1"
        assert request.url.params["limit"] == "10"


# ======================================================================
# Search
# ======================================================================


class TestSearch:
    @pytest.fixture()
    def search_routes(self, router: _Router) -> _Router:
        router.add(
            MB,
            "/ws/2/release-group/",
            json={
                "count": 2,
                "release-groups": [
                    {
                        "id": "rg1",
                        "title": "Abbey Road",
                        "primary-type": "Album",
                        "first-release-date": "1969-09-26",
                        "artist-credit": _credit(),
                    },
                    {
                        "id": "rg2",
                        "title": "Abbey Road Sessions",
                        "primary-type": "Album",
                        "first-release-date": "2019",
                        "artist-credit": _credit(),
                    },
                ],
            },
        )
        router.add(
            MB,
            "/ws/2/release-group/rg1",
            json={
                "id": "rg1",
                "title": "Abbey Road",
                "releases": [
                    {"id": "r-late", "title": "Abbey Road", "date": "1987"},
                    {"id": "r-first", "title": "Abbey Road", "date": "1969-09-26"},
                ],
            },
        )
        router.add(MB, "/ws/2/release-group/rg2", json={"id": "rg2", "title": "X", "releases": []})
        router.add(CAA, "/release/r-first", json=_caa_images())
        return router

    @pytest.mark.asyncio
    async def test_search_resolves_representative_release(
        self, client, search_routes, entity_cache
    ) -> None:
        result = await client.search("abbey road", limit=2)

        assert result.total == 2
        first = result.albums[0]
        assert first.id == "r-first"
        assert first.release_group_id == "rg1"
        assert first.cover_art_url == "https://coverartarchive.org/release/x/500.jpg"
        assert await entity_cache.get_cached_album("r-first") == first
        assert (await entity_cache.get_cached_release_group("rg1")).title == "Abbey Road"

    @pytest.mark.asyncio
    async def test_group_without_releases_yields_degraded_album(
        self, client, search_routes, entity_cache
    ) -> None:
        result = await client.search("abbey road", limit=2)

        degraded = result.albums[1]
        assert degraded == Album(
            id="rg2",
            title="Abbey Road Sessions",
            artist_name="The Beatles",
            artist_id="a1",
            release_date="2019",
            release_group_id="rg2",
        )
        assert await entity_cache.get_cached_album("rg2") == degraded

    @pytest.mark.asyncio
    async def test_failed_group_lookup_degrades_instead_of_raising(
        self, client, search_routes
    ) -> None:
        search_routes.add(MB, "/ws/2/release-group/rg1", status=500, content=b"")

        result = await client.search("abbey road", limit=2)

        assert [a.id for a in result.albums] == ["rg1", "rg2"]
        assert result.albums[0].cover_art_url is None
        assert result.albums[0].release_date == "1969-09-26"

    @pytest.mark.asyncio
    async def test_non_string_release_date_degrades_only_that_group(
        self, client, search_routes
    ) -> None:
        search_routes.add(
            MB,
            "/ws/2/release-group/rg2",
            json={
                "id": "rg2",
                "title": "Abbey Road Sessions",
                "releases": [
                    {"id": "r-int", "title": "Sessions", "date": 1999},
                    {"id": "r-str", "title": "Sessions", "date": "2000"},
                ],
            },
        )

        result = await client.search("abbey road", limit=2)

        assert [a.id for a in result.albums] == ["r-first", "rg2"]
        assert result.albums[1].release_date == "2019"

    @pytest.mark.asyncio
    async def test_group_with_string_artist_is_skipped(self, client, search_routes) -> None:
        search_routes.add(
            MB,
            "/ws/2/release-group/",
            json={
                "count": 2,
                "release-groups": [
                    {"id": "rg1", "title": "Abbey Road", "artist-credit": _credit()},
                    {
                        "id": "rg2",
                        "title": "Broken",
                        "artist-credit": [{"name": "X", "artist": "a-string"}],
                    },
                ],
            },
        )

        result = await client.search("abbey road", limit=2)

        assert [a.id for a in result.albums] == ["r-first"]
        assert "/ws/2/release-group/rg2" not in search_routes.paths(MB)

    @pytest.mark.asyncio
    async def test_failed_search_request_returns_empty(self, client, router) -> None:
        router.add(MB, "/ws/2/release-group/", status=503, content=b"")

        result = await client.search("abbey road")

        assert result.is_empty()
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_search_release_groups_raises_on_failure(self, client, router) -> None:
        router.add(MB, "/ws/2/release-group/", status=503, content=b"")
        with pytest.raises(UpstreamUnavailableError):
            await client.search_release_groups("abbey road")

    @pytest.mark.asyncio
    async def test_search_sends_query_and_limit(self, client, search_routes) -> None:
        await client.search("Abbey Road", limit=2)
        request = search_routes.requests[0]
        assert request.url.params["query"] == "Abbey Road"
        assert request.url.params["limit"] == "2"

    @pytest.mark.asyncio
    async def test_search_basic_has_no_side_effects(self, client, router, entity_cache) -> None:
        router.add(
            MB,
            "/ws/2/release/",
            json={
                "count": 1,
                "releases": [{"id": "r1", "title": "Abbey Road", "artist-credit": _credit()}],
                "artists": [{"id": "a1", "name": "The Beatles", "country": "GB"}],
            },
        )

        result = await client.search_basic("abbey road")

        assert [a.id for a in result.albums] == ["r1"]
        assert result.albums[0].cover_art_url is None
        assert result.artists[0].country == "GB"
        assert await entity_cache.get_cached_album("r1") is None
        assert router.paths(CAA) == []


# ======================================================================
# Cover art
# ======================================================================


class TestCoverArt:
    @pytest.mark.asyncio
    async def test_prefers_front_image(self, client, router) -> None:
        router.add(
            CAA,
            "/release/r1",
            json={
                "images": [
                    {"front": False, "image": "https://caa/back.jpg"},
                    {"front": True, "image": "https://caa/front.jpg"},
                ]
            },
        )
        assert await client.get_cover_art_url("r1") == "https://caa/front.jpg"

    @pytest.mark.asyncio
    async def test_falls_back_to_first_image(self, client, router) -> None:
        router.add(CAA, "/release/r1", json=_caa_images(front=False, thumb=False))
        assert (
            await client.get_cover_art_url("r1")
            == "https://coverartarchive.org/release/x/full.jpg"
        )

    @pytest.mark.asyncio
    async def test_no_images_means_no_artwork(self, client, router) -> None:
        router.add(CAA, "/release/r1", json={"images": []})
        assert await client.get_cover_art_url("r1") is None

    @pytest.mark.asyncio
    async def test_errors_mean_no_artwork(self, client, router) -> None:
        router.fail(CAA, "/release/r1")
        router.add(CAA, "/release/r2", content=b"not json")
        assert await client.get_cover_art_url("r1") is None
        assert await client.get_cover_art_url("r2") is None
        assert await client.get_cover_art_url("r3") is None

    @pytest.mark.asyncio
    async def test_unexpected_image_shape_means_no_thumbnail(self, client, router) -> None:
        router.add(
            CAA,
            "/release/r1",
            json={"images": [{"front": True, "image": "https://c/x.jpg", "thumbnails": ["500"]}]},
        )
        router.add(
            CAA,
            "/release/r2",
            json={"images": [{"front": True, "image": 42, "thumbnails": {"500": None}}]},
        )

        assert await client.get_cover_art_url("r1") == "https://c/x.jpg"
        assert await client.get_cover_art_url("r2") is None

    @pytest.mark.asyncio
    async def test_release_with_odd_cover_art_reply_still_resolves(self, client, router) -> None:
        router.add(
            MB,
            "/ws/2/release/r1",
            json={"id": "r1", "title": "Abbey Road", "artist-credit": _credit()},
        )
        router.add(CAA, "/release/r1", json={"images": [{"front": True, "thumbnails": []}]})

        album = await client.get_release("r1")

        assert album is not None
        assert album.cover_art_url is None

    @pytest.mark.asyncio
    async def test_resolved_url_is_cached(self, client, router, entity_cache) -> None:
        router.add(CAA, "/release/r1", json=_caa_images())

        first = await client.get_cover_art_url("r1")
        second = await client.get_cover_art_url("r1")

        assert first == second
        assert await entity_cache.get_cached_cover_art("r1") == first
        assert router.paths(CAA) == ["/release/r1"]

    @pytest.mark.asyncio
    async def test_saved_artwork_preferred_over_external_url(
        self, http_client, entity_cache, limiter, router
    ) -> None:
        artwork = _FakeArtworkStore()
        client = MusicBrainzClient(http_client, entity_cache, artwork_store=artwork, limiter=limiter)
        router.add(CAA, "/release/r1", json=_caa_images())

        assert await client.get_cover_art_url("r1") == "/album-art/r1.jpg"
        assert artwork.saved == [("r1", "https://coverartarchive.org/release/x/500.jpg")]

    @pytest.mark.asyncio
    async def test_failed_save_keeps_external_url(
        self, http_client, entity_cache, limiter, router
    ) -> None:
        artwork = _FakeArtworkStore(save_ok=False)
        client = MusicBrainzClient(http_client, entity_cache, artwork_store=artwork, limiter=limiter)
        router.add(CAA, "/release/r1", json=_caa_images())

        assert (
            await client.get_cover_art_url("r1")
            == "https://coverartarchive.org/release/x/500.jpg"
        )

    @pytest.mark.asyncio
    async def test_existing_local_artwork_skips_archive(
        self, http_client, entity_cache, limiter, router
    ) -> None:
        artwork = _FakeArtworkStore(existing={"r1"})
        client = MusicBrainzClient(http_client, entity_cache, artwork_store=artwork, limiter=limiter)

        assert await client.get_cover_art_url("r1") == "/album-art/r1.jpg"
        assert router.requests == []

    @pytest.mark.asyncio
    async def test_batch_isolates_failures(self, client, router) -> None:
        router.add(CAA, "/release/r1", json=_caa_images())
        router.fail(CAA, "/release/r2")
        router.add(CAA, "/release/r3", json=_caa_images(thumb=False))

        result = await client.get_cover_art_urls(["r1", "r2", "r3"])

        assert result == {
            "r1": "https://coverartarchive.org/release/x/500.jpg",
            "r2": None,
            "r3": "https://coverartarchive.org/release/x/full.jpg",
        }

    @pytest.mark.asyncio
    async def test_batch_survives_unexpected_exception(self, client) -> None:
        async def _resolve(release_id: str) -> str | None:
            if release_id == "bad":
                raise RuntimeError("boom")
            return f"/album-art/{release_id}.jpg"

        with patch.object(client, "get_cover_art_url", side_effect=_resolve):
            result = await client.get_cover_art_urls(["ok", "bad"])

        assert result == {"ok": "/album-art/ok.jpg", "bad": None}

    @pytest.mark.asyncio
    async def test_enrich_only_fills_missing(self, client, router) -> None:
        router.add(CAA, "/release/r2", json=_caa_images())
        albums = [
            Album(id="r1", title="A", artist_name="X", artist_id="a", cover_art_url="/keep.jpg"),
            Album(id="r2", title="B", artist_name="X", artist_id="a"),
            Album(id="r3", title="C", artist_name="X", artist_id="a"),
        ]

        enriched = await client.enrich_with_cover_art(albums)

        assert [a.cover_art_url for a in enriched] == [
            "/keep.jpg",
            "https://coverartarchive.org/release/x/500.jpg",
            None,
        ]
        assert sorted(router.paths(CAA)) == ["/release/r2", "/release/r3"]
