"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

import httpx
from starlette.datastructures import State

from parsevideo.infrastructure.config import AppConfig
from parsevideo.infrastructure.relay import StreamRelay
from parsevideo.infrastructure.resolvers import ProviderRouter


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    http_client: httpx.AsyncClient
    relay_http_client: httpx.AsyncClient

    # Resolution
    provider_router: ProviderRouter

    # Media passthrough
    stream_relay: StreamRelay
