"""Resolve short-video share links into playable media URLs."""

__version__ = "0.1.0"
