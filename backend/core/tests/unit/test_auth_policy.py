"""Tests for route auth-policy marking and startup validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from starlette.middleware import Middleware
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route, WebSocketRoute

from core.auth.middleware import CoreAuthMiddleware
from core.auth.policy import AUTH_POLICY_ATTR, public_route, validate_route_auth_policy
from core.server.app import create_app

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def _handler(_request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


def _sync_handler(_request: Request) -> str:
    return "ok"


async def _ws_handler(websocket: WebSocket) -> None:
    await websocket.close()


def _protected_mount(session_store) -> Mount:
    return Mount(
        "/api",
        routes=[Route("/profile", _handler)],
        middleware=[Middleware(CoreAuthMiddleware, session_store=session_store)],
    )


class TestPublicRoute:
    def test_marks_async_endpoint(self):
        wrapped = public_route(_handler)
        assert getattr(wrapped, AUTH_POLICY_ATTR) == "public"
        assert not hasattr(_handler, AUTH_POLICY_ATTR)

    async def test_async_wrapper_delegates(self):
        response = await public_route(_handler)(None)
        assert response.status_code == 200

    def test_sync_wrapper_delegates(self):
        wrapped = public_route(_sync_handler)
        assert wrapped(None) == "ok"
        assert getattr(wrapped, AUTH_POLICY_ATTR) == "public"

    def test_preserves_name(self):
        assert public_route(_handler).__name__ == "_handler"


class TestValidateRouteAuthPolicy:
    def test_public_routes_and_protected_mount_pass(self, session_store):
        validate_route_auth_policy(
            [
                Route("/health", public_route(_handler)),
                WebSocketRoute("/ws/chat", public_route(_ws_handler)),
                _protected_mount(session_store),
            ],
        )

    def test_unmarked_route_fails(self):
        with pytest.raises(RuntimeError, match="/secret"):
            validate_route_auth_policy([Route("/secret", _handler)])

    def test_unmarked_websocket_fails(self):
        with pytest.raises(RuntimeError, match="/ws/chat"):
            validate_route_auth_policy([WebSocketRoute("/ws/chat", _ws_handler)])

    def test_mount_without_auth_middleware_fails(self):
        with pytest.raises(RuntimeError, match="mount without auth middleware"):
            validate_route_auth_policy([Mount("/api", routes=[Route("/profile", _handler)])])

    def test_lists_every_offender(self):
        with pytest.raises(RuntimeError) as exc_info:
            validate_route_auth_policy([Route("/a", _handler), Route("/b", _handler)])
        assert "/a" in str(exc_info.value)
        assert "/b" in str(exc_info.value)

    def test_core_app_routes_are_all_classified(self, settings):
        app = create_app(settings)
        validate_route_auth_policy(app.routes)
