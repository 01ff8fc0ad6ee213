"""Outbound fetch primitives.

Every helper translates ``httpx`` transport failures into
:class:`TransportError` so resolvers only deal with the domain taxonomy.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

import httpx
import structlog

from parsevideo.domain.exceptions import (
    ProviderAPIError,
    RedirectExpectedError,
    TransportError,
)

log = structlog.get_logger(__name__)

# Mobile Safari identity accepted by all modeled platforms.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 "
    "Mobile/15E148 Safari/604.1 Edg/122.0.0.0"
)


def build_http_client(
    *,
    timeout: float = 15.0,
    user_agent: str = DEFAULT_USER_AGENT,
    verify: bool = True,
) -> httpx.AsyncClient:
    """Create the shared async client.

    Redirects are off by default: resolvers decide per call whether a
    3xx is the answer they want or something to follow.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": user_agent},
        follow_redirects=False,
        verify=verify,
    )


def _headers_with_agent(headers: Mapping[str, str] | None) -> dict[str, str]:
    merged = dict(headers or {})
    if not any(k.lower() == "user-agent" for k in merged):
        merged["User-Agent"] = DEFAULT_USER_AGENT
    return merged


async def follow_one_redirect(
    client: httpx.AsyncClient,
    url: str,
    headers: Mapping[str, str] | None = None,
) -> str:
    """Return the ``Location`` of a single redirect hop without following it.

    The body is never read; the response is closed as soon as the
    headers are in.

    Raises:
        RedirectExpectedError: status is not 3xx or ``Location`` is missing.
        TransportError: malformed URL, or DNS, TLS, connect or timeout failure.
    """
    try:
        request = client.build_request("GET", url, headers=_headers_with_agent(headers))
        resp = await client.send(request, stream=True, follow_redirects=False)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportError(url, str(exc) or type(exc).__name__) from exc

    try:
        location = resp.headers.get("location", "").strip()
        if not resp.is_redirect or not location:
            raise RedirectExpectedError(url, resp.status_code)
    finally:
        await resp.aclose()

    # Relative Location headers resolve against the request URL.
    resolved = str(httpx.URL(url).join(location))
    log.debug("redirect_followed", url=url, location=resolved)
    return resolved


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    headers: Mapping[str, str] | None = None,
) -> str:
    """GET a page and return its decoded body."""
    try:
        resp = await client.get(
            url,
            headers=_headers_with_agent(headers),
            follow_redirects=True,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportError(url, str(exc) or type(exc).__name__) from exc
    log.debug("page_fetched", url=url, status=resp.status_code, size=len(resp.content))
    return resp.text


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider: str,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, str] | None = None,
) -> Any:
    """GET a JSON API endpoint.

    A body that is not JSON is reported as a provider failure, since the
    platform answered but not in the protocol we speak.
    """
    try:
        resp = await client.get(
            url,
            headers=_headers_with_agent(headers),
            params=params,
            follow_redirects=True,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportError(url, str(exc) or type(exc).__name__) from exc

    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        log.warning(
            "api_response_not_json",
            provider=provider,
            url=url,
            status=resp.status_code,
        )
        raise ProviderAPIError(
            provider, f"non-JSON response (status {resp.status_code})"
        ) from exc
