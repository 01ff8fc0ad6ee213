"""End-to-end tests for the video endpoints.

Tests the full request-response cycle through:
    HTTP Request -> FastAPI Router -> ProviderRouter/StreamRelay -> Presenter -> JSON

Resolution is mocked at the router port; the relay runs for real against
respx-mocked media hosts.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from parsevideo.domain.entities.video import VideoAuthor, VideoInfo
from parsevideo.domain.exceptions import (
    ContentUnavailableError,
    RetryExhaustedError,
    ShareUrlNotFoundError,
    TransportError,
    UnsupportedProviderError,
)
from parsevideo.infrastructure.config import load_config
from parsevideo.infrastructure.relay import RelayResponse, StreamRelay
from parsevideo.interfaces.api.video import router
from parsevideo.interfaces.app import create_app

_MEDIA = "https://v3-a.douyinvod.com/abc/video.mp4"
_WECHAT_UA = "Mozilla/5.0 (iPhone) AppleWebKit/605.1.15 MicroMessenger/8.0.42"


def _make_app(
    *,
    provider_router: MagicMock | None = None,
    stream_relay: object | None = None,
) -> FastAPI:
    """Build a minimal FastAPI app with the video router + mocked state."""
    app = FastAPI()
    app.include_router(router)
    app.state.config = MagicMock()
    app.state.provider_router = provider_router or MagicMock()
    app.state.stream_relay = stream_relay or MagicMock()
    return app


def _video() -> VideoInfo:
    return VideoInfo(
        title="sunset over the river",
        video_url=_MEDIA,
        cover_url="https://p3.douyinpic.com/cover.jpeg",
        author=VideoAuthor(uid="MS4wLjABAAAA", name="river_cam", avatar="https://a/x.jpeg"),
    )


def _router_returning(info: VideoInfo) -> MagicMock:
    provider_router = MagicMock()
    provider_router.resolve_share_url = AsyncMock(return_value=info)
    provider_router.resolve_by_id = AsyncMock(return_value=info)
    return provider_router


def _router_raising(exc: Exception) -> MagicMock:
    provider_router = MagicMock()
    provider_router.resolve_share_url = AsyncMock(side_effect=exc)
    provider_router.resolve_by_id = AsyncMock(side_effect=exc)
    return provider_router


# ---------------------------------------------------------------------------
# /video/share/url/parse
# ---------------------------------------------------------------------------


class TestShareUrlParse:
    def test_success_envelope(self) -> None:
        provider_router = _router_returning(_video())
        client = TestClient(_make_app(provider_router=provider_router))

        resp = client.get("/video/share/url/parse", params={"url": "https://v.douyin.com/abc/"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 200
        assert body["msg"] == "parsed successfully"
        assert body["data"] == {
            "author": {
                "uid": "MS4wLjABAAAA",
                "name": "river_cam",
                "avatar": "https://a/x.jpeg",
            },
            "title": "sunset over the river",
            "video_url": _MEDIA,
            "music_url": "",
            "cover_url": "https://p3.douyinpic.com/cover.jpeg",
            "images": [],
        }
        provider_router.resolve_share_url.assert_awaited_once_with("https://v.douyin.com/abc/")

    def test_gallery_envelope(self) -> None:
        info = VideoInfo(title="album", images=["https://p/1.webp", "https://p/2.webp"])
        client = TestClient(_make_app(provider_router=_router_returning(info)))

        body = client.get("/video/share/url/parse", params={"url": "x"}).json()

        assert body["data"]["images"] == ["https://p/1.webp", "https://p/2.webp"]
        assert body["data"]["video_url"] == ""

    def test_unsupported_host(self) -> None:
        exc = UnsupportedProviderError("www.youtube.com")
        client = TestClient(_make_app(provider_router=_router_raising(exc)))

        resp = client.get("/video/share/url/parse", params={"url": "https://www.youtube.com/x"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 201
        assert "www.youtube.com" in body["msg"]
        assert body["data"] is None

    def test_text_without_link(self) -> None:
        exc = ShareUrlNotFoundError("no http(s) URL found in share text")
        client = TestClient(_make_app(provider_router=_router_raising(exc)))

        body = client.get("/video/share/url/parse", params={"url": "hello"}).json()

        assert body["code"] == 201
        assert body["msg"] == "no http(s) URL found in share text"

    def test_removed_content(self) -> None:
        exc = ContentUnavailableError("douyin", "status_deleted", "removed by author")
        client = TestClient(_make_app(provider_router=_router_raising(exc)))

        body = client.get("/video/share/url/parse", params={"url": "x"}).json()

        assert body["code"] == 201
        assert body["msg"] == "get video info fail: status_deleted - removed by author"

    def test_retry_exhausted_ships_last_result(self) -> None:
        exc = RetryExhaustedError(30, _video())
        client = TestClient(_make_app(provider_router=_router_raising(exc)))

        body = client.get("/video/share/url/parse", params={"url": "x"}).json()

        assert body["code"] == 201
        assert "after 30 attempts" in body["msg"]
        assert body["data"]["video_url"] == _MEDIA

    def test_unexpected_error_is_enveloped(self) -> None:
        client = TestClient(_make_app(provider_router=_router_raising(KeyError("boom"))))

        resp = client.get("/video/share/url/parse", params={"url": "x"})

        assert resp.status_code == 200
        assert resp.json()["code"] == 201
        assert resp.json()["msg"].startswith("internal error")


# ---------------------------------------------------------------------------
# /video/id/parse
# ---------------------------------------------------------------------------


class TestIdParse:
    def test_success(self) -> None:
        provider_router = _router_returning(_video())
        client = TestClient(_make_app(provider_router=provider_router))

        body = client.get(
            "/video/id/parse", params={"source": "douyin", "video_id": "7312"}
        ).json()

        assert body["code"] == 200
        provider_router.resolve_by_id.assert_awaited_once_with("douyin", "7312")

    def test_empty_id(self) -> None:
        provider_router = _router_returning(_video())
        client = TestClient(_make_app(provider_router=provider_router))

        body = client.get("/video/id/parse", params={"source": "douyin"}).json()

        assert body["code"] == 201
        provider_router.resolve_by_id.assert_not_awaited()

    def test_unknown_source(self) -> None:
        exc = UnsupportedProviderError("kuaishou")
        client = TestClient(_make_app(provider_router=_router_raising(exc)))

        body = client.get(
            "/video/id/parse", params={"source": "kuaishou", "video_id": "1"}
        ).json()

        assert body["code"] == 201
        assert "kuaishou" in body["msg"]


# ---------------------------------------------------------------------------
# /video/stream
# ---------------------------------------------------------------------------


class TestStreamRelay:
    def test_missing_url(self) -> None:
        client = TestClient(_make_app())

        resp = client.get("/video/stream")

        assert resp.status_code == 400
        assert resp.json()["code"] == 400

    @respx.mock
    def test_generic_client_passthrough(self) -> None:
        respx.get(_MEDIA).respond(
            200,
            content=b"\x00\x00\x00\x18ftypmp42",
            headers={"Content-Type": "video/mp4", "ETag": '"v1"'},
        )
        relay = StreamRelay(httpx.AsyncClient())
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": _MEDIA})

        assert resp.status_code == 200
        assert resp.content == b"\x00\x00\x00\x18ftypmp42"
        assert resp.headers["content-type"] == "video/mp4"
        assert resp.headers["etag"] == '"v1"'
        assert resp.headers["access-control-allow-origin"] == "*"

    @respx.mock
    def test_constrained_client_range(self) -> None:
        route = respx.get(_MEDIA).respond(
            206,
            content=b"0123456789",
            headers={
                "Content-Type": "video/mp4",
                "Content-Range": "bytes 0-9/100",
                "Server": "Tengine",
            },
        )
        relay = StreamRelay(httpx.AsyncClient())
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get(
            "/video/stream",
            params={"url": _MEDIA},
            headers={"User-Agent": _WECHAT_UA, "Range": "bytes=0-9"},
        )

        assert resp.status_code == 206
        assert resp.content == b"0123456789"
        assert resp.headers["content-range"] == "bytes 0-9/100"
        assert resp.headers["content-length"] == "10"
        assert resp.headers["accept-ranges"] == "bytes"
        assert resp.headers["access-control-allow-methods"] == "GET"
        assert "server" not in resp.headers
        assert route.calls.last.request.headers["range"] == "bytes=0-9"
        assert "MicroMessenger" not in route.calls.last.request.headers["user-agent"]

    @respx.mock
    def test_upstream_error_status(self) -> None:
        respx.get(_MEDIA).respond(403, content=b"forbidden")
        relay = StreamRelay(httpx.AsyncClient())
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": _MEDIA})

        assert resp.status_code == 502
        assert resp.json() == {
            "code": 502,
            "msg": "media server returned status 403",
            "data": None,
        }

    def test_unreachable_media_host(self) -> None:
        relay = MagicMock()
        relay.open = AsyncMock(side_effect=TransportError(_MEDIA, "connect timeout"))
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": _MEDIA})

        assert resp.status_code == 500
        assert resp.json()["code"] == 500

    def test_relayed_headers_replace_defaults(self) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield b"abc"

        relayed = RelayResponse(
            status_code=200,
            headers=[("Content-Type", "video/mp4"), ("Content-Length", "3")],
            body=body(),
            constrained=False,
            _upstream=MagicMock(),
        )
        relay = MagicMock()
        relay.open = AsyncMock(return_value=relayed)
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": _MEDIA})

        assert resp.content == b"abc"
        assert resp.headers["content-type"] == "video/mp4"

    @respx.mock
    def test_non_ascii_request_header_reaches_upstream(self) -> None:
        route = respx.get(_MEDIA).respond(200, content=b"abc")
        relay = StreamRelay(httpx.AsyncClient())
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get(
            "/video/stream", params={"url": _MEDIA}, headers={"X-Note": b"caf\xe9"}
        )

        assert resp.status_code == 200
        sent = [
            (name.lower(), value) for name, value in route.calls.last.request.headers.raw
        ]
        assert (b"x-note", b"caf\xe9") in sent

    @respx.mock
    def test_utf8_upstream_header_is_relayed(self) -> None:
        disposition = 'attachment; filename="日落.mp4"'.encode()
        respx.get(_MEDIA).respond(
            200,
            content=b"abc",
            headers=[
                (b"Content-Type", b"video/mp4"),
                (b"Content-Disposition", disposition),
            ],
        )
        relay = StreamRelay(httpx.AsyncClient())
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": _MEDIA})

        assert resp.status_code == 200
        assert resp.content == b"abc"
        received = [(name.lower(), value) for name, value in resp.headers.raw]
        assert (b"content-disposition", disposition) in received

    def test_malformed_media_url(self) -> None:
        relay = StreamRelay(httpx.AsyncClient())
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": "http://[::1"})

        assert resp.status_code == 500
        body = resp.json()
        assert body["code"] == 500
        assert body["data"] is None

    def test_header_build_failure_closes_upstream(self) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield b"abc"

        relayed = MagicMock()
        relayed.status_code = 200
        relayed.body = body()
        relayed.raw_headers = MagicMock(side_effect=ValueError("bad header"))
        relayed.aclose = AsyncMock()
        relay = MagicMock()
        relay.open = AsyncMock(return_value=relayed)
        client = TestClient(_make_app(stream_relay=relay))

        resp = client.get("/video/stream", params={"url": _MEDIA})

        assert resp.status_code == 500
        assert resp.json() == {
            "code": 500,
            "msg": "failed to relay video: bad header",
            "data": None,
        }
        relayed.aclose.assert_awaited_once()


# ---------------------------------------------------------------------------
# Full application
# ---------------------------------------------------------------------------


class TestApplication:
    @pytest.fixture()
    def app(self) -> FastAPI:
        return create_app(load_config(cli_overrides={"environment": "test"}))

    def test_healthz_lists_providers(self, app: FastAPI) -> None:
        with TestClient(app) as client:
            resp = client.get("/healthz")

        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "providers": ["douyin", "bilibili", "xigua"],
        }

    def test_unsupported_link_through_real_router(self, app: FastAPI) -> None:
        with TestClient(app) as client:
            body = client.get(
                "/video/share/url/parse",
                params={"url": "https://www.youtube.com/watch?v=abc"},
            ).json()

        assert body["code"] == 201
        assert "www.youtube.com" in body["msg"]
