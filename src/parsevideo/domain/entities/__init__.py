from .video import ResolutionRequest, VideoAuthor, VideoInfo, VideoSource

__all__ = [
    "ResolutionRequest",
    "VideoAuthor",
    "VideoInfo",
    "VideoSource",
]
