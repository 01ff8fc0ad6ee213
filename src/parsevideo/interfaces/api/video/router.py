"""Video endpoints: share-link parsing, ID parsing and media relay."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.responses import Response

from parsevideo.domain.exceptions import (
    ParseVideoError,
    TransportError,
    UpstreamStatusError,
)
from parsevideo.interfaces.api.video.presenter import (
    FAILURE_CODE,
    envelope,
    present_error,
    present_video,
)
from parsevideo.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/video", tags=["video"])


@router.get("/share/url/parse")
async def parse_share_url(request: Request, url: str = "") -> JSONResponse:
    """Resolve a share link (or pasted share text) into video metadata."""
    state = cast(AppState, request.app.state)
    try:
        info = await state.provider_router.resolve_share_url(url)
    except ParseVideoError as exc:
        log.warning("share_url_parse_failed", url=url, error=str(exc))
        return JSONResponse(present_error(exc))
    except Exception as exc:
        log.exception("share_url_parse_error", url=url)
        return JSONResponse(envelope(FAILURE_CODE, f"internal error: {exc}"))
    return JSONResponse(present_video(info))


@router.get("/id/parse")
async def parse_video_id(
    request: Request,
    source: str = "",
    video_id: str = "",
) -> JSONResponse:
    """Resolve a platform video ID when the platform is already known."""
    state = cast(AppState, request.app.state)
    if not video_id:
        return JSONResponse(envelope(FAILURE_CODE, "video_id must not be empty"))
    try:
        info = await state.provider_router.resolve_by_id(source, video_id)
    except ParseVideoError as exc:
        log.warning(
            "video_id_parse_failed", source=source, video_id=video_id, error=str(exc)
        )
        return JSONResponse(present_error(exc))
    except Exception as exc:
        log.exception("video_id_parse_error", source=source, video_id=video_id)
        return JSONResponse(envelope(FAILURE_CODE, f"internal error: {exc}"))
    return JSONResponse(present_video(info))


@router.get("/stream")
async def stream_video(request: Request, url: str = "") -> Response:
    """Relay a resolved media URL to the caller byte for byte."""
    if not url:
        return JSONResponse(
            envelope(400, "video url must not be empty"), status_code=400
        )

    state = cast(AppState, request.app.state)
    try:
        relayed = await state.stream_relay.open(url, request.headers.raw)
    except UpstreamStatusError as exc:
        return JSONResponse(
            envelope(502, f"media server returned status {exc.status_code}"),
            status_code=502,
        )
    except TransportError as exc:
        return JSONResponse(
            envelope(500, f"failed to fetch video: {exc}"), status_code=500
        )

    try:
        response = StreamingResponse(relayed.body, status_code=relayed.status_code)
        # Replace whatever Starlette staged with exactly the relayed set.
        response.raw_headers = [
            (name.lower(), value) for name, value in relayed.raw_headers()
        ]
    except Exception as exc:
        await relayed.aclose()
        log.exception("relay_response_build_failed", url=url[:200])
        return JSONResponse(
            envelope(500, f"failed to relay video: {exc}"), status_code=500
        )
    return response
