from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from edge.auth_check import AuthCheckClient
from edge.middleware import RouteProtectionMiddleware
from edge.proxy import UpstreamProxy
from edge.server.settings import EdgeServerSettings
from shared.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response

    from edge.auth_check import AuthChecker

logger = structlog.get_logger()

_PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def create_app(
    settings: EdgeServerSettings | None = None,
    *,
    auth_checker: AuthChecker | None = None,
    upstream: Callable[[Request], Awaitable[Response]] | None = None,
) -> Starlette:
    """Build the edge app: route protection in front of a proxy to the UI server.

    ``auth_checker`` and ``upstream`` default to HTTP clients for
    ``settings.core_url`` and ``settings.ui_url``; tests pass their own.
    """
    if settings is None:  # pragma: no cover
        settings = EdgeServerSettings()

    owned_clients: list[AuthCheckClient | UpstreamProxy] = []
    if auth_checker is None:
        auth_checker = AuthCheckClient(settings.core_url, timeout=settings.auth_check_timeout)
        owned_clients.append(auth_checker)
    if upstream is None:
        upstream = UpstreamProxy(settings.ui_url)
        owned_clients.append(upstream)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        for client in owned_clients:
            await client.aclose()

    async def forward(request: Request) -> Response:
        return await upstream(request)

    routes = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/{path:path}", forward, methods=_PROXY_METHODS, name="upstream"),
    ]

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        middleware=[Middleware(RouteProtectionMiddleware, auth_checker=auth_checker)],
    )
    app.state.settings = settings
    app.state.auth_checker = auth_checker

    logger.info("edge layer ready", core_url=settings.core_url, ui_url=settings.ui_url)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory edge.server.app:get_app."""
    settings = EdgeServerSettings()
    setup_logging("edge", log_dir=settings.log_dir)
    return create_app(settings)
