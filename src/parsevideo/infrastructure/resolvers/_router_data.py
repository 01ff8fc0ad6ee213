"""Shared parsing for share pages that embed ``window._ROUTER_DATA``.

Douyin and Xigua share pages are rendered by the same frontend; both
carry the item list under ``loaderData.<route>.videoInfoRes``.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from parsevideo.domain.entities.video import VideoAuthor, VideoInfo
from parsevideo.domain.exceptions import (
    ContentUnavailableError,
    ProviderAPIError,
    RedirectExpectedError,
)
from parsevideo.infrastructure.common.extractors import dig, dig_str, extract_json
from parsevideo.infrastructure.common.http import follow_one_redirect

log = structlog.get_logger(__name__)

ROUTER_DATA_MARKER = r"window\._ROUTER_DATA\s*=\s*"

# Route key used by the video share page; other keys are scanned as fallback.
_VIDEO_ROUTE = "video_(id)/page"


def load_router_data(html: bytes | str, provider: str) -> Any:
    raw = extract_json(html, ROUTER_DATA_MARKER)
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProviderAPIError(provider, "embedded page data is not valid JSON") from exc


def _video_info_res(data: Any) -> Any:
    res = dig(data, "loaderData", _VIDEO_ROUTE, "videoInfoRes")
    if res is not None:
        return res
    loader = dig(data, "loaderData")
    if isinstance(loader, dict):
        for route in loader.values():
            res = dig(route, "videoInfoRes")
            if res is not None:
                return res
    return None


def find_item(data: Any, video_id: str, provider: str) -> dict[str, Any]:
    """Locate the item record for *video_id*.

    Falls back to the first listed item when no record carries the ID.

    Raises:
        ContentUnavailableError: the item list is empty; the reason comes
            from the matching ``filter_list`` entry.
    """
    res = _video_info_res(data)
    items = [i for i in (dig(res, "item_list") or []) if isinstance(i, dict)]
    for item in items:
        if dig_str(item, "aweme_id") == video_id:
            return item
    if items:
        return items[0]

    reason, detail = "", ""
    for entry in dig(res, "filter_list") or []:
        if dig_str(entry, "aweme_id") == video_id:
            reason = dig_str(entry, "filter_reason")
            detail = dig_str(entry, "detail_msg")
            break
    raise ContentUnavailableError(provider, reason, detail)


def strip_watermark(url: str) -> str:
    """Swap the watermarked ``playwm`` CDN path for the clean ``play`` one."""
    return url.replace("playwm", "play")


def item_to_video_info(item: dict[str, Any], *, allow_gallery: bool) -> VideoInfo:
    """Build a :class:`VideoInfo` from one item record.

    Gallery posts also expose a video URL that does not play, so it is
    dropped whenever images are present.
    """
    images: list[str] = []
    if allow_gallery:
        for image in dig(item, "images") or []:
            image_url = dig_str(image, "url_list", 0)
            if image_url:
                images.append(image_url)

    video_url = strip_watermark(dig_str(item, "video", "play_addr", "url_list", 0))
    if images:
        video_url = ""

    return VideoInfo(
        title=dig_str(item, "desc"),
        video_url=video_url,
        cover_url=dig_str(item, "video", "cover", "url_list", 0),
        images=images,
        author=VideoAuthor(
            uid=dig_str(item, "author", "sec_uid"),
            name=dig_str(item, "author", "nickname"),
            avatar=dig_str(item, "author", "avatar_thumb", "url_list", 0),
        ),
    )


def last_path_segment(path: str) -> str:
    """Final non-empty segment of a URL path (``""`` if none)."""
    parts = [p for p in path.strip("/").split("/") if p]
    return parts[-1] if parts else ""


async def unwrap_media_redirect(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    provider: str,
) -> str:
    """Replace a play-address stub with the CDN URL it redirects to.

    A stub that answers without a redirect is kept as is.
    """
    try:
        return await follow_one_redirect(client, url, headers)
    except RedirectExpectedError as exc:
        log.warning(
            f"{provider}_media_redirect_missing",
            url=url[:120],
            status=exc.status_code,
        )
        return url
