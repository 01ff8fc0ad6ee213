"""Byte-for-byte media relay."""

from __future__ import annotations

from .stream_relay import RelayResponse, StreamRelay, is_constrained_client

__all__ = ["RelayResponse", "StreamRelay", "is_constrained_client"]
