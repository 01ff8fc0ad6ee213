"""Shared test fixtures for the parse-video test suite."""

from __future__ import annotations

import pytest

from parsevideo.domain.entities.video import VideoAuthor, VideoInfo


@pytest.fixture()
def video_info() -> VideoInfo:
    """Single-video result with every field populated."""
    return VideoInfo(
        title="sunset over the river",
        video_url="https://v3-a.douyinvod.com/abc/video.mp4",
        music_url="https://sf3-cdn.douyinstatic.com/music.mp3",
        cover_url="https://p3.douyinpic.com/cover.jpeg",
        author=VideoAuthor(
            uid="MS4wLjABAAAA",
            name="river_cam",
            avatar="https://p3.douyinpic.com/avatar.jpeg",
        ),
    )


@pytest.fixture()
def gallery_info() -> VideoInfo:
    """Image-gallery result: images set, video_url empty."""
    return VideoInfo(
        title="album",
        images=["https://p3.douyinpic.com/1.webp", "https://p3.douyinpic.com/2.webp"],
    )
