"""Port for per-platform video resolvers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from parsevideo.domain.entities.video import VideoInfo, VideoSource


@runtime_checkable
class VideoResolverPort(Protocol):
    """Resolves a share link of one platform into a :class:`VideoInfo`.

    Resolvers that also accept bare platform IDs expose
    ``resolve_id(video_id)``; the router checks for it with ``getattr``.
    """

    @property
    def source(self) -> VideoSource:
        """Platform tag this resolver handles."""
        ...

    @property
    def supported_hosts(self) -> frozenset[str]:
        """Exact hostnames whose share links this resolver accepts."""
        ...

    async def resolve_share_url(self, share_url: str) -> VideoInfo:
        """Resolve a share link. Raises a ``ParseVideoError`` on failure."""
        ...
