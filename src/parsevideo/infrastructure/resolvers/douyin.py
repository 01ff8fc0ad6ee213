"""Douyin resolver: short links, web links, bare IDs and image galleries.

Share links come in two shapes:
    https://v.douyin.com/{code}/                 (app share, one redirect)
    https://www.douyin.com/video/{aweme_id}      (web, ID in the path)
    https://www.iesdouyin.com/share/video/{aweme_id}/

With an ID in hand the mobile share page is fetched and the item record
is read from its embedded ``window._ROUTER_DATA`` blob. The play address
is a redirect stub; the CDN host behind it is drawn from an unstable
pool, so resolution is repeated until the host is on an allow-list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

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
from parsevideo.infrastructure.resolvers.retry_guard import DomainValidityGuard

if TYPE_CHECKING:
    from parsevideo.infrastructure.resolvers.registry import ProviderRouter

log = structlog.get_logger(__name__)

_SHORT_HOSTS = frozenset({"v.douyin.com"})
_WEB_HOSTS = frozenset(
    {"www.douyin.com", "douyin.com", "www.iesdouyin.com", "iesdouyin.com"}
)

_SHARE_PAGE = "https://www.iesdouyin.com/share/video/{video_id}"

# CDN edge hosts known to be reachable by end users.
ALLOWED_CDN_HOSTS: frozenset[str] = frozenset(
    {
        "v93.douyinvod.com", "v5-che.douyinvod.com", "v6-qos-hourly.douyinvod.com",
        "v26-che.douyinvod.com", "v6-cold.douyinvod.com", "v83-x.douyinvod.com",
        "v5-coldb.douyinvod.com", "v3-z.douyinvod.com", "v1-x.douyinvod.com",
        "v6-ab-e1.douyinvod.com", "v5-abtest.douyinvod.com", "v9-che.douyinvod.com",
        "v83-y.douyinvod.com", "v5-litea.douyinvod.com", "v3-che.douyinvod.com",
        "v29-cold.douyinvod.com", "v5-lite.douyinvod.com",
        "v29-qos-control.douyinvod.com", "v5-gdgz.douyinvod.com",
        "v5-ttcp-a.douyinvod.com", "v3-b.douyinvod.com",
        "v9-z-qos-control.douyinvod.com", "v9-x-qos-hourly.douyinvod.com",
        "v9-chc.douyinvod.com", "v9-qos-hourly.douyinvod.com",
        "v5-ttcp-b.douyinvod.com", "v6-z-qos-control.douyinvod.com",
        "v5-dlyd.douyinvod.com", "v5-coldy.douyinvod.com", "v3-c.douyinvod.com",
        "v5-jbwl.douyinvod.com", "v26-0015c002.douyinvod.com",
        "v5-gdwy.douyinvod.com", "v3-d.douyinvod.com", "v3-p.douyinvod.com",
        "v5-gdhy.douyinvod.com", "v26-cold.douyinvod.com", "v5-lite-a.douyinvod.com",
        "v5-i.douyinvod.com", "v5-g.douyinvod.com", "v26-qos-daily.douyinvod.com",
        "v5-dash.douyinvod.com", "v5-h.douyinvod.com", "v5-f.douyinvod.com",
        "v3-a.douyinvod.com", "v83.douyinvod.com", "v5-cold.douyinvod.com",
        "v3-y.douyinvod.com", "v26-x.douyinvod.com", "v27-ipv6.douyinvod.com",
        "v9-ipv6.douyinvod.com", "v5-yacu.douyinvod.com", "v29-ipv6.douyinvod.com",
        "v26-coldf.douyinvod.com", "v5.douyinvod.com", "v11.douyinvod.com",
        "v6-z.douyinvod.com", "v1.douyinvod.com", "v9-y.douyinvod.com",
        "v9-z.douyinvod.com", "v9.douyinvod.com", "v3-x.douyinvod.com",
        "v6-y.douyinvod.com", "v3-ipv6.douyinvod.com", "v5-e.douyinvod.com",
        "v3.douyinvod.com", "v6-ipv6.douyinvod.com", "v9-x.douyinvod.com",
        "v6-p.douyinvod.com", "v1-2p.douyinvod.com", "v1-p.douyinvod.com",
        "v1-ipv6.douyinvod.com", "v24.douyinvod.com", "v1-dy.douyinvod.com",
        "v6.douyinvod.com", "v6-x.douyinvod.com", "v26-ipv6.douyinvod.com",
        "v27.douyinvod.com", "v92.douyinvod.com", "v95.douyinvod.com",
        "douyinvod.com", "v26.douyinvod.com", "v29.douyinvod.com",
    }
)


def extract_video_id(url: str) -> str:
    """Read the aweme ID from a web link (``""`` if there is none).

    ``modal_id`` wins over the path, since profile pages open videos
    in a modal: ``https://www.douyin.com/user/xyz?modal_id=7312``.
    """
    parsed = urlparse(url)
    modal = parse_qs(parsed.query).get("modal_id")
    if modal and modal[0]:
        return modal[0]
    return last_path_segment(parsed.path)


class DouyinResolver:
    """Resolves Douyin share links and aweme IDs."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        guard: DomainValidityGuard | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._http = http_client
        self._guard = guard or DomainValidityGuard(ALLOWED_CDN_HOSTS, name="douyin")
        self._headers = {"User-Agent": user_agent}
        self._router: ProviderRouter | None = None

    @property
    def source(self) -> VideoSource:
        return VideoSource.DOUYIN

    @property
    def supported_hosts(self) -> frozenset[str]:
        return _SHORT_HOSTS | _WEB_HOSTS

    def bind_router(self, router: ProviderRouter) -> None:
        self._router = router

    async def resolve_share_url(self, share_url: str) -> VideoInfo:
        host = (urlparse(share_url).hostname or "").lower()
        if host in _SHORT_HOSTS:
            return await self._resolve_app_share_url(share_url)
        if host in _WEB_HOSTS:
            video_id = extract_video_id(share_url)
            if not video_id:
                raise ProviderAPIError("douyin", f"no video id in {share_url}")
            return await self.resolve_id(video_id)
        raise UnsupportedProviderError(host, "not a douyin host")

    async def resolve_id(self, video_id: str) -> VideoInfo:
        """Resolve an aweme ID, retrying until the CDN host is allow-listed."""
        return await self._guard.run(lambda: self._resolve_id_once(video_id))

    async def _resolve_app_share_url(self, share_url: str) -> VideoInfo:
        location = await follow_one_redirect(self._http, share_url, self._headers)
        target = urlparse(location)
        video_id = extract_video_id(location)
        if not video_id:
            raise ProviderAPIError("douyin", f"no video id in redirect target {location}")

        # Short links for other platforms (e.g. Xigua) share this domain.
        target_host = (target.hostname or "").lower()
        if target_host not in self.supported_hosts and self._router is not None:
            try:
                resolver = self._router.resolver_for_host(target_host)
            except UnsupportedProviderError:
                resolver = None
            if resolver is not None and resolver is not self:
                log.info(
                    "douyin_share_redirect_cross_platform",
                    target=resolver.source.value,
                    video_id=video_id,
                )
                return await self._router.resolve_by_id(resolver.source.value, video_id)

        return await self.resolve_id(video_id)

    async def _resolve_id_once(self, video_id: str) -> VideoInfo:
        html = await fetch_text(
            self._http, _SHARE_PAGE.format(video_id=video_id), self._headers
        )
        data = load_router_data(html, "douyin")
        item = find_item(data, video_id, "douyin")
        info = item_to_video_info(item, allow_gallery=True)

        if info.video_url:
            info.video_url = await unwrap_media_redirect(
                self._http, info.video_url, self._headers, "douyin"
            )

        log.debug(
            "douyin_resolved",
            video_id=video_id,
            is_gallery=info.is_gallery,
            images=len(info.images),
        )
        return info
