"""Text and JSON extraction helpers.

The platforms change their payloads without notice, so nothing here
validates a schema: lookups that miss simply come back empty.
"""

from __future__ import annotations

import re
from typing import Any

from parsevideo.domain.exceptions import MarkerNotFoundError, ShareUrlNotFoundError

_SCRIPT_END = b"</script>"

# Share blurbs mix prose, emoji and a link; stop at whitespace and CJK text.
_SHARE_URL_RE = re.compile(r"https?://[\w.-]+[\w/-]*[\w.-]*\??[\w=&:\-+%]*/*", re.ASCII)


def extract_share_url(text: str) -> str:
    """Return the first http(s) URL found in pasted share text.

    >>> extract_share_url("7.41 复制打开抖音 https://v.douyin.com/iRNBho6u/ 看看")
    'https://v.douyin.com/iRNBho6u/'
    """
    match = _SHARE_URL_RE.search(text or "")
    if match is None:
        raise ShareUrlNotFoundError(f"no share URL found in: {text!r}")
    return match.group(0)


def extract_json(html: bytes | str, marker: str) -> bytes:
    """Return the raw bytes between *marker* and the next ``</script>``.

    *marker* is a regular expression matching the assignment prefix, for
    example ``r"window\\._ROUTER_DATA\\s*=\\s*"``. The returned bytes are
    stripped of surrounding whitespace but not parsed.

    Raises:
        MarkerNotFoundError: the marker (or its closing script tag) is absent.
    """
    data = html.encode("utf-8") if isinstance(html, str) else html
    match = re.search(marker.encode("utf-8"), data)
    if match is None:
        raise MarkerNotFoundError(marker)
    end = data.find(_SCRIPT_END, match.end())
    if end < 0:
        raise MarkerNotFoundError(marker)
    return data[match.end() : end].strip()


def dig(data: Any, *path: str | int) -> Any:
    """Walk *data* along *path*; ``None`` on the first missing segment.

    String segments index dicts, integer segments index lists.
    """
    current = data
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(current, list) or not -len(current) <= segment < len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, dict) or segment not in current:
                return None
            current = current[segment]
    return current


def dig_str(data: Any, *path: str | int) -> str:
    """Like :func:`dig` but coerce scalar leaves to ``str`` (``""`` if absent)."""
    value = dig(data, *path)
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
