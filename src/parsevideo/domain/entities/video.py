"""Domain entities for video resolution.

Pure value objects: no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class VideoSource(str, Enum):
    """Closed set of supported platform tags."""

    DOUYIN = "douyin"
    BILIBILI = "bilibili"
    XIGUA = "xigua"


@dataclass
class VideoAuthor:
    """Uploader metadata. Every field is empty when the platform omits it."""

    uid: str = ""
    name: str = ""
    avatar: str = ""


@dataclass
class VideoInfo:
    """Canonical resolution result.

    Gallery posts carry ``images`` and leave ``video_url`` empty; single
    videos carry ``video_url`` and leave ``images`` empty.
    """

    title: str = ""
    video_url: str = ""
    music_url: str = ""
    cover_url: str = ""
    images: list[str] = field(default_factory=list)
    author: VideoAuthor = field(default_factory=VideoAuthor)

    @property
    def is_gallery(self) -> bool:
        return bool(self.images)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape returned by the HTTP API."""
        return {
            "author": {
                "uid": self.author.uid,
                "name": self.author.name,
                "avatar": self.author.avatar,
            },
            "title": self.title,
            "video_url": self.video_url,
            "music_url": self.music_url,
            "cover_url": self.cover_url,
            "images": list(self.images),
        }


@dataclass(frozen=True)
class ResolutionRequest:
    """Either a raw share link or an explicit ``(source, video_id)`` pair."""

    share_url: str = ""
    source: str = ""
    video_id: str = ""

    def __post_init__(self) -> None:
        has_url = bool(self.share_url)
        has_id = bool(self.source or self.video_id)
        if has_url == has_id:
            raise ValueError(
                "ResolutionRequest needs either share_url or (source, video_id)"
            )
        if has_id and not (self.source and self.video_id):
            raise ValueError("source and video_id must both be set")

    @property
    def is_share_url(self) -> bool:
        return bool(self.share_url)
