"""Xigua resolver.

Xigua share pages reuse the Douyin share frontend, so the item is read
from the same embedded ``window._ROUTER_DATA`` blob. Xigua has no image
galleries and no CDN allow-list.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

import httpx
import structlog

from parsevideo.domain.entities.video import VideoInfo, VideoSource
from parsevideo.domain.exceptions import ProviderAPIError, UnsupportedProviderError
from parsevideo.infrastructure.common.http import (
    DEFAULT_USER_AGENT,
    fetch_text,
    follow_one_redirect,
)
from parsevideo.infrastructure.resolvers._router_data import (
    find_item,
    item_to_video_info,
    last_path_segment,
    load_router_data,
    unwrap_media_redirect,
)

log = structlog.get_logger(__name__)

_SHORT_HOSTS = frozenset({"v.ixigua.com"})
_WEB_HOSTS = frozenset({"www.ixigua.com", "ixigua.com", "m.ixigua.com"})

_SHARE_PAGE = (
    "https://m.ixigua.com/douyin/share/video/{video_id}"
    "?aweme_type=107&schema_type=1&utm_source=copy"
    "&utm_campaign=client_share&utm_medium=android&app=aweme"
)

# Web links sometimes prefix the numeric ID with "i" (legacy item pages).
_ID_RE = re.compile(r"^i?(\d+)$")


def extract_video_id(url: str) -> str:
    """Numeric video ID from the final path segment (``""`` if absent)."""
    match = _ID_RE.match(last_path_segment(urlparse(url).path))
    return match.group(1) if match else ""


class XiguaResolver:
    """Resolves Xigua share links and video IDs."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._http = http_client
        self._headers = {"User-Agent": user_agent}

    @property
    def source(self) -> VideoSource:
        return VideoSource.XIGUA

    @property
    def supported_hosts(self) -> frozenset[str]:
        return _SHORT_HOSTS | _WEB_HOSTS

    async def resolve_share_url(self, share_url: str) -> VideoInfo:
        host = (urlparse(share_url).hostname or "").lower()
        if host in _SHORT_HOSTS:
            share_url = await follow_one_redirect(self._http, share_url, self._headers)
        elif host not in _WEB_HOSTS:
            raise UnsupportedProviderError(host, "not a xigua host")

        video_id = extract_video_id(share_url)
        if not video_id:
            raise ProviderAPIError("xigua", f"no video id in {share_url}")
        return await self.resolve_id(video_id)

    async def resolve_id(self, video_id: str) -> VideoInfo:
        html = await fetch_text(
            self._http, _SHARE_PAGE.format(video_id=video_id), self._headers
        )
        data = load_router_data(html, "xigua")
        item = find_item(data, video_id, "xigua")
        info = item_to_video_info(item, allow_gallery=False)
        if info.video_url:
            info.video_url = await unwrap_media_redirect(
                self._http, info.video_url, self._headers, "xigua"
            )
        log.debug("xigua_resolved", video_id=video_id)
        return info
