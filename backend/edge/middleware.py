"""Route protection for the edge layer in front of the UI."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from starlette.requests import HTTPConnection
from starlette.responses import RedirectResponse

from shared.errors import unauthorized_response
from shared.protection import (
    PROTECTED_PREFIXES,
    SESSION_COOKIE_NAME,
    is_api_path,
    is_protected_path,
    login_redirect_url,
)

if TYPE_CHECKING:
    from starlette.responses import Response
    from starlette.types import ASGIApp, Receive, Scope, Send

    from edge.auth_check import AuthChecker

logger = structlog.get_logger()


def deny_response(path: str) -> Response:
    """401 JSON for API paths, redirect to login for pages."""
    if is_api_path(path):
        return unauthorized_response()
    return RedirectResponse(login_redirect_url(path), status_code=HTTPStatus.FOUND)


class RouteProtectionMiddleware:
    """Let protected paths through only after the core confirms the session.

    Unprotected paths are forwarded without any check. A protected request
    with no session cookie is denied without calling the core. Otherwise the
    auth checker decides and every failure denies.
    """

    def __init__(
        self,
        app: ASGIApp,
        auth_checker: AuthChecker,
        *,
        protected_prefixes: tuple[str, ...] = PROTECTED_PREFIXES,
        cookie_name: str = SESSION_COOKIE_NAME,
    ) -> None:
        self.app = app
        self._auth_checker = auth_checker
        self._protected_prefixes = protected_prefixes
        self._cookie_name = cookie_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path: str = scope["path"]
        if not is_protected_path(path, self._protected_prefixes):
            await self.app(scope, receive, send)
            return

        token = HTTPConnection(scope).cookies.get(self._cookie_name)
        if not token:
            logger.info("no session cookie, denying", path=path)
            await deny_response(path)(scope, receive, send)
            return

        if not await self._auth_checker.check(token):
            logger.info("session not authenticated, denying", path=path)
            await deny_response(path)(scope, receive, send)
            return

        await self.app(scope, receive, send)
