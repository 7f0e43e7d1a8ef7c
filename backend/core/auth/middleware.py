"""Session gate for the core service's protected ``/api`` routes.

Mounted on the protected sub-router only, so public endpoints (login,
register, auth-check) never pass through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.requests import HTTPConnection

from shared.errors import unauthorized_response

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

    from core.auth.session_store import SessionStore


class CoreAuthMiddleware:
    """Reject requests without an authenticated session with a 401 JSON body.

    Authenticated requests get ``request.state.user_id`` and
    ``request.state.session`` and run unchanged. The unauthenticated path
    never writes a cookie.
    """

    def __init__(self, app: ASGIApp, session_store: SessionStore) -> None:
        self.app = app
        self._session_store = session_store

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        session = self._session_store.get(HTTPConnection(scope))
        if not session.is_principal:
            response = unauthorized_response()
            await response(scope, receive, send)
            return

        scope.setdefault("state", {})
        scope["state"]["user_id"] = session.user_id
        scope["state"]["session"] = session
        await self.app(scope, receive, send)
