"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from parsevideo.infrastructure.common.http import build_http_client
from parsevideo.infrastructure.config.schema import AppConfig
from parsevideo.infrastructure.relay import StreamRelay
from parsevideo.infrastructure.resolvers import DomainValidityGuard, ProviderRouter
from parsevideo.infrastructure.resolvers.bilibili import BilibiliResolver
from parsevideo.infrastructure.resolvers.douyin import (
    ALLOWED_CDN_HOSTS,
    DouyinResolver,
)
from parsevideo.infrastructure.resolvers.xigua import XiguaResolver
from parsevideo.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_provider_router(
    config: AppConfig, http_client: httpx.AsyncClient
) -> ProviderRouter:
    """Wire every platform resolver onto one shared client."""
    guard = DomainValidityGuard(
        ALLOWED_CDN_HOSTS,
        max_attempts=config.douyin.retry_max_attempts,
        backoff_min=config.douyin.retry_backoff_min_seconds,
        backoff_max=config.douyin.retry_backoff_max_seconds,
        name="douyin",
    )
    ua = config.http_user_agent
    return ProviderRouter(
        resolvers=[
            DouyinResolver(http_client, guard=guard, user_agent=ua),
            BilibiliResolver(http_client, user_agent=ua),
            XiguaResolver(http_client, user_agent=ua),
        ]
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: initialize and clean up all resources.

    Order matters:
        1. Platform HTTP client (required by resolvers)
        2. Provider router + resolvers
        3. Relay HTTP client + stream relay
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Shared client for platform pages and APIs (redirects handled per call)
    state.http_client = build_http_client(
        timeout=config.http_timeout_seconds,
        user_agent=config.http_user_agent,
    )
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    # 2) Resolvers
    state.provider_router = build_provider_router(config, state.http_client)
    log.info("provider_router_initialized", sources=state.provider_router.supported_sources)

    # 3) Relay client: follows CDN redirects, certificate checks configurable
    state.relay_http_client = build_http_client(
        timeout=config.relay.timeout_seconds,
        user_agent=config.relay.constrained_user_agent,
        verify=config.relay.verify_tls,
    )
    state.stream_relay = StreamRelay(
        state.relay_http_client,
        constrained_patterns=config.relay.constrained_agent_patterns,
        constrained_user_agent=config.relay.constrained_user_agent,
        chunk_size=config.relay.chunk_size,
    )
    log.info(
        "stream_relay_initialized",
        timeout=config.relay.timeout_seconds,
        verify_tls=config.relay.verify_tls,
    )

    try:
        yield
    finally:
        await state.relay_http_client.aclose()
        await state.http_client.aclose()
        log.info("http_clients_closed")
