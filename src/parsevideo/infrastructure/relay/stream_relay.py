"""Streaming relay for resolved media URLs.

Fetches the media server-side and forwards the body untouched. Header
handling depends on who is asking: restricted in-app browsers (WeChat
and its mini programs) choke on headers they do not expect, so they get
a small fixed set in both directions; everyone else gets near-complete
passthrough plus permissive CORS.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from typing import Union

import httpx
import structlog

from parsevideo.domain.exceptions import TransportError, UpstreamStatusError

log = structlog.get_logger(__name__)

CONSTRAINED_AGENT_PATTERNS: tuple[str, ...] = ("MicroMessenger", "miniProgram")

CONSTRAINED_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 13_2_3 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/13.0.3 "
    "Mobile/15E148 Safari/604.1"
)

# Lower-cased; compared against lower-cased names.
_SKIP_REQUEST_HEADERS = frozenset({"connection", "sec-fetch-mode", "host"})
_SKIP_RESPONSE_HEADERS = frozenset({"connection", "transfer-encoding"})

_GENERIC_CORS_HEADERS: tuple[tuple[str, str], ...] = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", "GET, OPTIONS"),
    ("Access-Control-Allow-Headers", "*"),
    ("Access-Control-Expose-Headers", "*"),
)

HeaderPairs = list[tuple[str, str]]
RawHeaderPairs = list[tuple[bytes, bytes]]
HeaderInput = Union[
    Mapping[str, str], Iterable[tuple[str, str]], Iterable[tuple[bytes, bytes]]
]


def is_constrained_client(
    user_agent: str | None,
    patterns: Iterable[str] = CONSTRAINED_AGENT_PATTERNS,
) -> bool:
    """True when *user_agent* carries a restricted in-app browser signature."""
    if not user_agent:
        return False
    return any(pattern in user_agent for pattern in patterns)


def _text(value: str | bytes) -> str:
    # Latin-1 maps every byte to one code point, so the original bytes survive.
    return value.decode("latin-1") if isinstance(value, bytes) else value


def _wire(value: str) -> bytes:
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


def to_raw_headers(pairs: HeaderPairs) -> RawHeaderPairs:
    """Encode header pairs for the wire without ever failing on a value."""
    return [(_wire(name), _wire(value)) for name, value in pairs]


def _pairs(headers: HeaderInput) -> HeaderPairs:
    if isinstance(headers, httpx.Headers):
        return [(_text(k), _text(v)) for k, v in headers.raw]
    if isinstance(headers, Mapping):
        return [(_text(k), _text(v)) for k, v in headers.items()]
    return [(_text(k), _text(v)) for k, v in headers]


def _first(pairs: HeaderPairs, name: str) -> str:
    lowered = name.lower()
    for key, value in pairs:
        if key.lower() == lowered:
            return value
    return ""


def _is_encoded(pairs: HeaderPairs) -> bool:
    return _first(pairs, "content-encoding").strip().lower() not in ("", "identity")


def build_upstream_headers(
    inbound: HeaderInput,
    *,
    constrained: bool,
    fallback_user_agent: str = CONSTRAINED_USER_AGENT,
) -> HeaderPairs:
    """Choose which client headers travel to the media host.

    Constrained clients get a fixed identity and only ``Range`` is passed
    through. Other clients have everything forwarded except
    connection-management headers. A User-Agent is always present.
    """
    pairs = _pairs(inbound)
    if constrained:
        out: HeaderPairs = [("User-Agent", fallback_user_agent)]
        range_header = _first(pairs, "range")
        if range_header:
            out.append(("Range", range_header))
        out += [
            ("Accept", "*/*"),
            ("Accept-Encoding", "gzip, deflate"),
            ("Connection", "keep-alive"),
        ]
        return out

    out = [(k, v) for k, v in pairs if k.lower() not in _SKIP_REQUEST_HEADERS]
    if not _first(out, "user-agent"):
        out.append(("User-Agent", fallback_user_agent))
    return out


def build_client_headers(
    upstream: HeaderInput,
    *,
    constrained: bool,
) -> HeaderPairs:
    """Choose which media-host response headers reach the client."""
    pairs = _pairs(upstream)
    if constrained:
        content_type = _first(pairs, "content-type") or "video/mp4"
        out: HeaderPairs = [("Content-Type", content_type)]
        # Encoded bodies are decoded for these clients, so the length is stale.
        kept: tuple[str, ...] = ("Content-Range",)
        if not _is_encoded(pairs):
            kept += ("Content-Length",)
        for name in kept:
            value = _first(pairs, name)
            if value:
                out.append((name, value))
        out += [
            ("Access-Control-Allow-Origin", "*"),
            ("Access-Control-Allow-Methods", "GET"),
            ("Accept-Ranges", "bytes"),
        ]
        return out

    cors_names = {name.lower() for name, _ in _GENERIC_CORS_HEADERS}
    out = [
        (k, v)
        for k, v in pairs
        if k.lower() not in _SKIP_RESPONSE_HEADERS and k.lower() not in cors_names
    ]
    out.extend(_GENERIC_CORS_HEADERS)
    return out


@dataclass
class RelayResponse:
    """An open upstream response ready to be copied to the client.

    ``body`` closes the upstream connection when exhausted, interrupted or
    cancelled. Call :meth:`aclose` if the body is never iterated.
    """

    status_code: int
    headers: HeaderPairs
    body: AsyncIterator[bytes]
    constrained: bool
    _upstream: httpx.Response

    def raw_headers(self) -> RawHeaderPairs:
        return to_raw_headers(self.headers)

    async def aclose(self) -> None:
        await self._upstream.aclose()


class StreamRelay:
    """Opens media URLs upstream and exposes their bodies as byte streams.

    Args:
        http_client: Client used for upstream fetches. Callers normally
            build it with TLS verification off and a bounded timeout.
        constrained_patterns: User-Agent substrings of restricted clients.
        constrained_user_agent: Identity presented on their behalf.
        chunk_size: Read size for the body copy.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        constrained_patterns: Iterable[str] = CONSTRAINED_AGENT_PATTERNS,
        constrained_user_agent: str = CONSTRAINED_USER_AGENT,
        chunk_size: int = 65536,
    ) -> None:
        self._http = http_client
        self._patterns = tuple(constrained_patterns)
        self._user_agent = constrained_user_agent
        self._chunk_size = chunk_size

    async def open(
        self,
        media_url: str,
        inbound_headers: HeaderInput,
    ) -> RelayResponse:
        """Start the upstream fetch and return headers plus a body stream.

        Header values travel as bytes, so non-ASCII client or upstream
        headers pass through unchanged.

        Raises:
            TransportError: the media URL is malformed or the media host
                could not be reached.
            UpstreamStatusError: the media host answered with status >= 400;
                no body is read.
        """
        pairs = _pairs(inbound_headers)
        constrained = is_constrained_client(_first(pairs, "user-agent"), self._patterns)
        if constrained:
            log.info("relay_constrained_client", user_agent=_first(pairs, "user-agent"))

        outbound = build_upstream_headers(
            pairs,
            constrained=constrained,
            fallback_user_agent=self._user_agent,
        )
        log.info("relay_request", url=media_url[:200], constrained=constrained)
        try:
            request = self._http.build_request(
                "GET", media_url, headers=to_raw_headers(outbound)
            )
            resp = await self._http.send(request, stream=True, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning("relay_upstream_unreachable", url=media_url[:200], error=str(exc))
            raise TransportError(media_url, str(exc) or type(exc).__name__) from exc

        if resp.status_code >= 400:
            await resp.aclose()
            log.warning("relay_upstream_status", status=resp.status_code, url=media_url[:200])
            raise UpstreamStatusError(resp.status_code, media_url)

        upstream = _pairs(resp.headers)
        # Constrained clients get no Content-Encoding, so they get decoded bytes.
        decode = constrained and _is_encoded(upstream)
        return RelayResponse(
            status_code=resp.status_code,
            headers=build_client_headers(upstream, constrained=constrained),
            body=self._copy_body(resp, media_url, decode=decode),
            constrained=constrained,
            _upstream=resp,
        )

    async def _copy_body(
        self, resp: httpx.Response, media_url: str, *, decode: bool = False
    ) -> AsyncIterator[bytes]:
        chunks = (
            resp.aiter_bytes(self._chunk_size)
            if decode
            else resp.aiter_raw(self._chunk_size)
        )
        written = 0
        try:
            async for chunk in chunks:
                written += len(chunk)
                yield chunk
        except httpx.HTTPError as exc:
            # Status line is already sent; the client sees a truncated body.
            log.error(
                "relay_stream_interrupted",
                url=media_url[:200],
                bytes_written=written,
                error=str(exc),
            )
        except (asyncio.CancelledError, GeneratorExit):
            log.info("relay_client_disconnected", url=media_url[:200], bytes_written=written)
            raise
        else:
            log.info("relay_stream_finished", url=media_url[:200], bytes_written=written)
        finally:
            await resp.aclose()
