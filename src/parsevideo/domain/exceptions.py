"""Resolution error taxonomy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from parsevideo.domain.entities.video import VideoInfo


class ParseVideoError(Exception):
    """Base class for all resolution errors."""


class UnsupportedProviderError(ParseVideoError):
    """Raised when no resolver is registered for a host or source tag."""

    def __init__(self, target: str, reason: str = "") -> None:
        self.target = target
        message = f"unsupported provider: {target!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ShareUrlNotFoundError(ParseVideoError):
    """Raised when pasted share text contains no http(s) URL."""


class TransportError(ParseVideoError):
    """Raised on DNS, TLS, connect or timeout failures talking to upstream."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        super().__init__(f"request to {url} failed: {detail}")


class RedirectExpectedError(ParseVideoError):
    """Raised when a redirect was expected but the response had none."""

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(
            f"expected redirect from {url}, got status {status_code} "
            "without usable Location"
        )


class MarkerNotFoundError(ParseVideoError):
    """Raised when an embedded JSON marker is missing from an HTML page."""

    def __init__(self, marker: str) -> None:
        self.marker = marker
        super().__init__(f"embedded data marker not found: {marker}")


class ProviderAPIError(ParseVideoError):
    """Raised when a platform API answers with a non-zero status code."""

    def __init__(self, provider: str, message: str, code: int | None = None) -> None:
        self.provider = provider
        self.code = code
        super().__init__(f"{provider} api error: {message}")


class ContentUnavailableError(ParseVideoError):
    """Raised when a platform reports the item as removed or filtered."""

    def __init__(self, provider: str, reason: str, detail: str = "") -> None:
        self.provider = provider
        self.reason = reason
        self.detail = detail
        super().__init__(f"get video info fail: {reason} - {detail}")


class RetryExhaustedError(ParseVideoError):
    """Raised when the domain-validity guard used all attempts.

    ``result`` keeps the last resolution so callers may still use it.
    """

    def __init__(self, attempts: int, result: VideoInfo) -> None:
        self.attempts = attempts
        self.result = result
        super().__init__(
            f"video URL does not contain any allowed domains after {attempts} attempts"
        )


class UpstreamStatusError(ParseVideoError):
    """Raised by the relay when the media host answers with status >= 400."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"upstream returned status {status_code}")
