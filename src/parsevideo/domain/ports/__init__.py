from .video_resolver import VideoResolverPort

__all__ = ["VideoResolverPort"]
