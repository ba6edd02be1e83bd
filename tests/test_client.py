"""Tests for the catalog client: format selection, signing and media resolution."""

import hashlib

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from qobuz_server.api.client import QobuzCatalogClient, is_preview, select_format
from qobuz_server.exceptions import (
    EntitlementExhaustedError,
    InvalidAppSecretError,
    InvalidQualityError,
    NotStreamableError,
    TransientAuthError,
)
from qobuz_server.models.catalog import Track

TOKEN_A = "tokenAAAA-first"
TOKEN_B = "tokenBBBB-second"

FULL_STREAM = {"url": "https://streaming.example/full.flac", "duration": 215}
PREVIEW_STREAM = {"url": "https://streaming.example/sample.flac", "duration": 30}


class ScriptedApi:
    """
    Replaces `_request`. Tokens listed in `revoked` fail the 'user/get' probe,
    and each 'track/getFileUrl' call consumes the next scripted response.
    """

    def __init__(self, file_url_responses=(), revoke_on_preview=False):
        self.file_url_responses = list(file_url_responses)
        self.revoke_on_preview = revoke_on_preview
        self.revoked = set()
        self.calls = []

    def calls_to(self, endpoint):
        return [call for call in self.calls if call[0] == endpoint]

    async def __call__(self, endpoint, params, token, timeout=None):
        self.calls.append((endpoint, dict(params), token))
        if endpoint == "user/get":
            streaming = token not in self.revoked
            return {"credential": {"parameters": {"lossless_streaming": streaming}}}
        if endpoint == "track/getFileUrl":
            response = self.file_url_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            if self.revoke_on_preview and is_preview(response):
                self.revoked.add(token)
            return response
        return {"endpoint": endpoint, **params}


@pytest.fixture
def client():
    return QobuzCatalogClient("123456789", "s3cr3t", [TOKEN_A, TOKEN_B])


class TestSelectFormat:
    @pytest.mark.parametrize(
        "bit_depth, sampling_rate, expected",
        [
            (24, 192.0, 27),
            (24, 96.0, 7),
            (24, 44.1, 7),
            (16, 44.1, 6),
            (None, None, 5),
        ],
    )
    def test_picks_highest_supported_tier(self, bit_depth, sampling_rate, expected):
        track = Track(
            id=1, maximum_bit_depth=bit_depth, maximum_sampling_rate=sampling_rate
        )
        assert select_format(track) == expected


class TestIsPreview:
    def test_sample_flag(self):
        assert is_preview({"url": "x", "sample": True})

    def test_thirty_second_duration(self):
        assert is_preview({"url": "x", "duration": 30})

    def test_full_stream(self):
        assert not is_preview({"url": "x", "duration": 215, "sample": False})

    def test_explicit_sample_flag_wins_over_duration(self):
        assert not is_preview({"url": "x", "duration": 30, "sample": False})

    def test_thirty_second_track_is_not_a_preview(self):
        assert not is_preview({"url": "x", "duration": 30}, track_duration=30)
        assert is_preview({"url": "x", "duration": 30}, track_duration=215)


class TestSigning:
    def test_signature_covers_format_track_and_timestamp(self, client, monkeypatch):
        monkeypatch.setattr("qobuz_server.api.client.time.time", lambda: 1700000000.5)

        params = client._prepare_get_file_url_params("12345", 27)

        expected = hashlib.md5(
            b"trackgetFileUrlformat_id27intentstreamtrack_id123451700000000s3cr3t"
        ).hexdigest()
        assert params == {
            "format_id": 27,
            "intent": "stream",
            "track_id": "12345",
            "request_ts": 1700000000,
            "request_sig": expected,
        }

    def test_rejects_unknown_format(self, client):
        with pytest.raises(InvalidQualityError):
            client._prepare_get_file_url_params("1", 8)

    def test_requires_a_secret(self):
        client = QobuzCatalogClient("123", "", [TOKEN_A])
        with pytest.raises(InvalidAppSecretError):
            client._prepare_get_file_url_params("1", 6)


class TestResolveMediaLocation:
    @pytest.mark.asyncio
    async def test_returns_full_stream(self, client, monkeypatch):
        api = ScriptedApi([FULL_STREAM])
        monkeypatch.setattr(client, "_request", api)

        location = await client.resolve_media_location("42", 6)

        assert location == FULL_STREAM
        endpoint, params, token = api.calls_to("track/getFileUrl")[0]
        assert token == TOKEN_A
        assert params["track_id"] == "42"
        assert params["format_id"] == 6

    @pytest.mark.asyncio
    async def test_preview_rotates_to_a_fresh_token(self, client, monkeypatch):
        """Should invalidate the token that produced a preview and retry once."""
        api = ScriptedApi([PREVIEW_STREAM, FULL_STREAM], revoke_on_preview=True)
        monkeypatch.setattr(client, "_request", api)

        location = await client.resolve_media_location("42", 27)

        assert location == FULL_STREAM
        assert [token for _, _, token in api.calls_to("track/getFileUrl")] == [
            TOKEN_A,
            TOKEN_B,
        ]

    @pytest.mark.asyncio
    async def test_thirty_second_track_keeps_its_token(self, client, monkeypatch):
        """Should accept a full 30 second stream without rotating tokens."""
        api = ScriptedApi([PREVIEW_STREAM, FULL_STREAM])
        monkeypatch.setattr(client, "_request", api)

        location = await client.resolve_media_location("42", 6, track_duration=30)

        assert location == PREVIEW_STREAM
        assert len(api.calls_to("track/getFileUrl")) == 1
        assert len(api.calls_to("user/get")) == 1

    @pytest.mark.asyncio
    async def test_second_preview_gives_up(self, client, monkeypatch):
        """Should raise after exactly two attempts, never a third."""
        api = ScriptedApi(
            [PREVIEW_STREAM, {"url": "https://x", "sample": True}, FULL_STREAM]
        )
        monkeypatch.setattr(client, "_request", api)

        with pytest.raises(EntitlementExhaustedError):
            await client.resolve_media_location("42", 27)

        assert len(api.calls_to("track/getFileUrl")) == 2

    @pytest.mark.asyncio
    async def test_auth_rejection_is_retried_once(self, client, monkeypatch):
        api = ScriptedApi([TransientAuthError("rejected", status=401), FULL_STREAM])
        monkeypatch.setattr(client, "_request", api)

        assert await client.resolve_media_location("42", 6) == FULL_STREAM
        # The pool was re-scanned after the rejection
        assert len(api.calls_to("user/get")) == 2

    @pytest.mark.asyncio
    async def test_repeated_auth_rejection_surfaces(self, client, monkeypatch):
        api = ScriptedApi(
            [
                TransientAuthError("rejected", status=403),
                TransientAuthError("rejected", status=403),
            ]
        )
        monkeypatch.setattr(client, "_request", api)

        with pytest.raises(TransientAuthError) as exc_info:
            await client.resolve_media_location("42", 6)

        assert exc_info.value.status == 403
        assert len(api.calls_to("track/getFileUrl")) == 2

    @pytest.mark.asyncio
    async def test_unknown_format_fails_before_any_request(self, client, monkeypatch):
        api = ScriptedApi([FULL_STREAM])
        monkeypatch.setattr(client, "_request", api)

        with pytest.raises(InvalidQualityError):
            await client.resolve_media_location("42", 8)
        assert api.calls == []

    @pytest.mark.asyncio
    async def test_missing_url_is_not_streamable(self, client, monkeypatch):
        api = ScriptedApi([{"duration": 215}])
        monkeypatch.setattr(client, "_request", api)

        with pytest.raises(NotStreamableError):
            await client.resolve_media_location("42", 6)
        assert len(api.calls_to("track/getFileUrl")) == 1


class TestBrowseCalls:
    @pytest.mark.asyncio
    async def test_album_fetch_requests_track_ids(self, client, monkeypatch):
        async def fake_request(endpoint, params, token, timeout=None):
            if endpoint == "user/get":
                return {"credential": {"parameters": {"lossless_streaming": True}}}
            assert endpoint == "album/get"
            assert params == {"album_id": "500", "extra": "track_ids"}
            return {"id": "500", "title": "Fetched", "tracks": {"items": [{"id": 1}]}}

        monkeypatch.setattr(client, "_request", fake_request)

        album = await client.fetch_album_metadata("500")

        assert album.title == "Fetched"
        assert [track.id for track in album.track_items] == [1]

    @pytest.mark.asyncio
    async def test_release_listing_is_sorted_by_date(self, client, monkeypatch):
        api = ScriptedApi()
        monkeypatch.setattr(client, "_request", api)

        data = await client.fetch_artist_releases("77", release_type="live", offset=10)

        assert data["endpoint"] == "artist/getReleasesList"
        assert data["sort"] == "release_date"
        assert data["track_size"] == 1000
        assert data["release_type"] == "live"
        assert data["offset"] == 10

    @pytest.mark.asyncio
    async def test_errors_pass_through_without_rotation(self, client, monkeypatch):
        calls = []

        async def fake_request(endpoint, params, token, timeout=None):
            calls.append(endpoint)
            if endpoint == "user/get":
                return {"credential": {"parameters": {"lossless_streaming": True}}}
            raise TransientAuthError("rejected", status=401)

        monkeypatch.setattr(client, "_request", fake_request)

        with pytest.raises(TransientAuthError):
            await client.search("miles davis")
        with pytest.raises(TransientAuthError):
            await client.search("miles davis")

        # The cached token survives browse failures
        assert calls == ["user/get", "catalog/search", "catalog/search"]


class TestRequest:
    @pytest.mark.asyncio
    async def test_sends_app_id_and_token_headers(self):
        seen = {}

        async def handler(request):
            seen["app_id"] = request.headers.get("X-App-Id")
            seen["token"] = request.headers.get("X-User-Auth-Token")
            seen["query"] = dict(request.query)
            return web.json_response({"ok": True})

        app = web.Application()
        app.router.add_get("/catalog/search", handler)
        async with TestServer(app) as server:
            client = QobuzCatalogClient(
                "123456789", "s3cr3t", [TOKEN_A], api_base=str(server.make_url("/"))
            )
            try:
                data = await client._request("catalog/search", {"query": "x"}, TOKEN_A)
            finally:
                await client.close()

        assert data == {"ok": True}
        assert seen == {
            "app_id": "123456789",
            "token": TOKEN_A,
            "query": {"query": "x"},
        }

    @pytest.mark.asyncio
    async def test_auth_statuses_become_transient_auth_errors(self):
        async def handler(request):
            return web.json_response({"message": "denied"}, status=401)

        app = web.Application()
        app.router.add_get("/user/get", handler)
        async with TestServer(app) as server:
            client = QobuzCatalogClient(
                "123", "s3cr3t", [TOKEN_A], api_base=str(server.make_url("/"))
            )
            try:
                with pytest.raises(TransientAuthError) as exc_info:
                    await client.probe_token(TOKEN_A)
            finally:
                await client.close()

        assert exc_info.value.status == 401
