"""Bounded re-resolution until the media host is on an allow-list.

Some platforms hand out video URLs drawn from a CDN pool in which a few
edge hosts are unreachable for end users. Resolving again usually yields
a different host, so the guard repeats the whole resolution serially,
with a short randomized pause between attempts to stay under rate limits.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Iterable
from urllib.parse import urlparse

import structlog

from parsevideo.domain.entities.video import VideoInfo
from parsevideo.domain.exceptions import RetryExhaustedError

log = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def host_of(url: str) -> str:
    """Lower-cased hostname of *url*, ``""`` when it cannot be parsed."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


class DomainValidityGuard:
    """Re-run a resolver until its video URL host is allow-listed.

    Args:
        allowed_hosts: Exact hostnames considered reachable.
        max_attempts: Attempt ceiling (>= 1).
        backoff_min: Lower bound of the pause between attempts (seconds).
        backoff_max: Upper bound of the pause between attempts (seconds).
        sleep: Awaitable sleep; tests pass a no-op.
        rng: Source of the random pause length.
        name: Prefix for log events.
    """

    def __init__(
        self,
        allowed_hosts: Iterable[str],
        *,
        max_attempts: int = 30,
        backoff_min: float = 0.1,
        backoff_max: float = 0.3,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
        name: str = "domain_guard",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if backoff_min < 0 or backoff_max < backoff_min:
            raise ValueError("require 0 <= backoff_min <= backoff_max")
        self._allowed = frozenset(h.lower() for h in allowed_hosts)
        self._max_attempts = max_attempts
        self._backoff_min = backoff_min
        self._backoff_max = backoff_max
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._name = name

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def is_allowed(self, url: str) -> bool:
        host = host_of(url)
        return bool(host) and host in self._allowed

    async def run(self, resolve_once: Callable[[], Awaitable[VideoInfo]]) -> VideoInfo:
        """Call *resolve_once* until the result needs no validation or passes.

        Errors raised by *resolve_once* propagate immediately. When every
        attempt lands off the allow-list, :class:`RetryExhaustedError` is
        raised carrying the last result.
        """
        attempt = 1
        while True:
            info = await resolve_once()

            # Galleries and empty results have nothing to validate.
            if info.images or not info.video_url:
                return info

            if self.is_allowed(info.video_url):
                if attempt > 1:
                    log.info(
                        f"{self._name}_retry_succeeded",
                        attempt=attempt,
                        host=host_of(info.video_url),
                    )
                return info

            log.debug(
                f"{self._name}_retry_attempt",
                attempt=attempt,
                max_attempts=self._max_attempts,
                host=host_of(info.video_url),
            )
            if attempt >= self._max_attempts:
                break
            await self._sleep(self._rng.uniform(self._backoff_min, self._backoff_max))
            attempt += 1

        log.warning(
            f"{self._name}_retry_exhausted",
            attempts=self._max_attempts,
            host=host_of(info.video_url),
        )
        raise RetryExhaustedError(self._max_attempts, info)
