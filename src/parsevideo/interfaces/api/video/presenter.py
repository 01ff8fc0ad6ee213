"""JSON envelope rendering for the video endpoints.

Every answer has the shape ``{"code", "msg", "data"}``. ``code`` 200 means
success; anything else is a failure described by ``msg``.
"""

from __future__ import annotations

from typing import Any

from parsevideo.domain.entities.video import VideoInfo
from parsevideo.domain.exceptions import ParseVideoError, RetryExhaustedError

SUCCESS_CODE = 200
FAILURE_CODE = 201

SUCCESS_MSG = "parsed successfully"


def envelope(code: int, msg: str, data: Any = None) -> dict[str, Any]:
    return {"code": code, "msg": msg, "data": data}


def present_video(info: VideoInfo) -> dict[str, Any]:
    return envelope(SUCCESS_CODE, SUCCESS_MSG, info.to_dict())


def present_error(exc: ParseVideoError) -> dict[str, Any]:
    """Failure envelope; exhausted retries still ship their last result."""
    data = exc.result.to_dict() if isinstance(exc, RetryExhaustedError) else None
    return envelope(FAILURE_CODE, str(exc), data)
