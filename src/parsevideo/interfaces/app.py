"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from parsevideo import __version__
from parsevideo.infrastructure.config import AppConfig
from parsevideo.interfaces.app_state import AppState
from parsevideo.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration only, no resource initialization.

    Resources (HTTP clients, resolvers, relay) are created in lifespan().
    """
    app = FastAPI(
        title="parse-video",
        description="Resolve short-video share links into playable media URLs",
        version=__version__,
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from parsevideo.interfaces.api.video import router as video_router

    app.include_router(video_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str | list[str]]:
        """Liveness check: returns 200 as long as the process is running."""
        router = getattr(app.state, "provider_router", None)
        return {
            "status": "ok",
            "providers": router.supported_sources if router else [],
        }

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
