"""Shared HTTP and extraction helpers used by every resolver."""

from __future__ import annotations

from .extractors import dig, dig_str, extract_json, extract_share_url
from .http import fetch_json, fetch_text, follow_one_redirect

__all__ = [
    "dig",
    "dig_str",
    "extract_json",
    "extract_share_url",
    "fetch_json",
    "fetch_text",
    "follow_one_redirect",
]
