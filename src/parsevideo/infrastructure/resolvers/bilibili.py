"""Bilibili resolver.

Two API calls per video:
    1. ``/x/web-interface/view?bvid=`` for title, cover, uploader and ``cid``
    2. ``/x/player/wbi/playurl?bvid=&cid=`` for the playback variants

DASH answers carry split video and audio streams; the first entry of
each list is the highest quality the anonymous API hands out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
import structlog

from parsevideo.domain.entities.video import VideoAuthor, VideoInfo, VideoSource
from parsevideo.domain.exceptions import ProviderAPIError, UnsupportedProviderError
from parsevideo.infrastructure.common.extractors import dig, dig_str
from parsevideo.infrastructure.common.http import (
    DEFAULT_USER_AGENT,
    fetch_json,
    follow_one_redirect,
)

if TYPE_CHECKING:
    from parsevideo.infrastructure.resolvers.registry import ProviderRouter

log = structlog.get_logger(__name__)

_SHORT_HOSTS = frozenset({"b23.tv"})
_WEB_HOSTS = frozenset({"www.bilibili.com", "bilibili.com", "m.bilibili.com"})

_VIEW_API = "https://api.bilibili.com/x/web-interface/view"
_PLAY_API = "https://api.bilibili.com/x/player/wbi/playurl"

# qn=80 asks for 1080p, fnval=4048 for all DASH variants.
_PLAY_PARAMS = {"qn": "80", "fnval": "4048", "fourk": "1"}


def extract_bvid(url: str) -> str:
    """Find the BV id in a video URL path (``""`` if absent).

    Accepts any segment starting with ``BV`` or the segment that follows
    ``video``.
    """
    parts = [p for p in urlparse(url).path.strip("/").split("/") if p]
    for i, part in enumerate(parts):
        if part.startswith("BV"):
            return part
        if part == "video" and i + 1 < len(parts):
            return parts[i + 1]
    return ""


def _check_code(payload: Any, stage: str) -> None:
    code = dig(payload, "code")
    if code is None or code != 0:
        message = dig_str(payload, "message") or "missing status code"
        raise ProviderAPIError(
            "bilibili",
            f"{stage} failed: {message}",
            code=code if isinstance(code, int) else None,
        )


class BilibiliResolver:
    """Resolves Bilibili web share links (``b23.tv`` short links included)."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._http = http_client
        self._user_agent = user_agent
        self._router: ProviderRouter | None = None

    @property
    def source(self) -> VideoSource:
        return VideoSource.BILIBILI

    @property
    def supported_hosts(self) -> frozenset[str]:
        return _SHORT_HOSTS | _WEB_HOSTS

    def bind_router(self, router: ProviderRouter) -> None:
        self._router = router

    async def resolve_share_url(self, share_url: str) -> VideoInfo:
        host = (urlparse(share_url).hostname or "").lower()
        if host in _SHORT_HOSTS:
            share_url = await follow_one_redirect(
                self._http, share_url, {"User-Agent": self._user_agent}
            )
            target_host = (urlparse(share_url).hostname or "").lower()
            if target_host not in _WEB_HOSTS and self._router is not None:
                log.info("bilibili_share_redirect_cross_platform", host=target_host)
                return await self._router.resolve_share_url(share_url)
        elif host not in _WEB_HOSTS:
            raise UnsupportedProviderError(host, "not a bilibili host")

        bvid = extract_bvid(share_url)
        if not bvid:
            raise ProviderAPIError("bilibili", f"no video id in {share_url}")
        return await self._resolve_bvid(bvid)

    async def _resolve_bvid(self, bvid: str) -> VideoInfo:
        view = await fetch_json(
            self._http,
            _VIEW_API,
            provider="bilibili",
            params={"bvid": bvid},
            headers={
                "User-Agent": self._user_agent,
                "Referer": "https://www.bilibili.com",
            },
        )
        _check_code(view, "view")
        data = dig(view, "data")
        cid = dig_str(data, "cid")

        play = await fetch_json(
            self._http,
            _PLAY_API,
            provider="bilibili",
            params={"bvid": bvid, "cid": cid, **_PLAY_PARAMS},
            headers={
                "User-Agent": self._user_agent,
                "Referer": f"https://www.bilibili.com/video/{bvid}",
            },
        )
        _check_code(play, "playurl")

        video_url = dig_str(play, "data", "dash", "video", 0, "baseUrl")
        audio_url = dig_str(play, "data", "dash", "audio", 0, "baseUrl")
        if not video_url:
            # Older uploads answer with progressive FLV/MP4 segments.
            video_url = dig_str(play, "data", "durl", 0, "url")

        log.debug("bilibili_resolved", bvid=bvid, cid=cid, has_audio=bool(audio_url))
        return VideoInfo(
            title=dig_str(data, "title"),
            video_url=video_url,
            music_url=audio_url,
            cover_url=dig_str(data, "pic"),
            author=VideoAuthor(
                uid=dig_str(data, "owner", "mid"),
                name=dig_str(data, "owner", "name"),
                avatar=dig_str(data, "owner", "face"),
            ),
        )
