"""Provider router: dispatches share links and IDs to platform resolvers."""

from __future__ import annotations

from urllib.parse import urlparse

import structlog

from parsevideo.domain.entities.video import ResolutionRequest, VideoInfo
from parsevideo.domain.exceptions import UnsupportedProviderError
from parsevideo.domain.ports.video_resolver import VideoResolverPort
from parsevideo.infrastructure.common.extractors import extract_share_url

log = structlog.get_logger(__name__)


def extract_host(url: str) -> str:
    """Lower-cased hostname of *url*; ``""`` if unparseable."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


class ProviderRouter:
    """Static host/tag table in front of the registered resolvers.

    The router performs no network I/O itself. Resolvers that expose a
    ``bind_router`` method receive the router on registration so they can
    hand off links that redirect onto another platform.
    """

    def __init__(self, resolvers: list[VideoResolverPort] | None = None) -> None:
        self._by_source: dict[str, VideoResolverPort] = {}
        self._by_host: dict[str, VideoResolverPort] = {}
        for resolver in resolvers or []:
            self.register(resolver)

    def register(self, resolver: VideoResolverPort) -> None:
        tag = resolver.source.value
        self._by_source[tag] = resolver
        for host in resolver.supported_hosts:
            self._by_host[host.lower()] = resolver
        bind = getattr(resolver, "bind_router", None)
        if bind is not None:
            bind(self)
        log.debug("video_resolver_registered", source=tag)

    @property
    def supported_sources(self) -> list[str]:
        return list(self._by_source.keys())

    def resolver_for_host(self, host: str) -> VideoResolverPort:
        resolver = self._by_host.get(host.lower())
        if resolver is None:
            raise UnsupportedProviderError(host)
        return resolver

    def resolver_for_source(self, source: str) -> VideoResolverPort:
        resolver = self._by_source.get(source.strip().lower())
        if resolver is None:
            raise UnsupportedProviderError(source)
        return resolver

    async def resolve_share_url(self, text: str) -> VideoInfo:
        """Resolve a share link, or pasted share text containing one."""
        url = extract_share_url(text)
        host = extract_host(url)
        resolver = self.resolver_for_host(host)
        log.info("share_url_dispatch", source=resolver.source.value, host=host)
        return await resolver.resolve_share_url(url)

    async def resolve_by_id(self, source: str, video_id: str) -> VideoInfo:
        """Resolve a platform ID when the caller already knows the platform."""
        resolver = self.resolver_for_source(source)
        resolve_id = getattr(resolver, "resolve_id", None)
        if resolve_id is None:
            raise UnsupportedProviderError(source, "share links only")
        log.info("video_id_dispatch", source=resolver.source.value, video_id=video_id)
        return await resolve_id(video_id)

    async def resolve(self, request: ResolutionRequest) -> VideoInfo:
        if request.is_share_url:
            return await self.resolve_share_url(request.share_url)
        return await self.resolve_by_id(request.source, request.video_id)
