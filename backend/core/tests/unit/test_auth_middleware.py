"""Tests for the core service's session gate."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.testclient import TestClient

from core.auth.middleware import CoreAuthMiddleware
from shared.protection import SESSION_COOKIE_NAME

if TYPE_CHECKING:
    from starlette.requests import Request

    from core.auth.session_store import SessionStore


def _make_app(session_store: SessionStore, calls: list[str]) -> Starlette:
    async def whoami(request: Request) -> JSONResponse:
        calls.append("whoami")
        return JSONResponse({"user_id": request.state.user_id}, status_code=202)

    async def fail(request: Request) -> JSONResponse:
        calls.append("fail")
        return JSONResponse({"error": "Forbidden"}, status_code=403)

    return Starlette(
        routes=[
            Mount(
                "/api",
                routes=[Route("/whoami", whoami), Route("/fail", fail)],
                middleware=[Middleware(CoreAuthMiddleware, session_store=session_store)],
            ),
        ],
    )


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def client(session_store, calls) -> TestClient:
    return TestClient(_make_app(session_store, calls))


class TestUnauthenticated:
    def test_no_cookie_returns_401_json(self, client, calls):
        response = client.get("/api/whoami")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert calls == []

    def test_invalid_cookie_returns_401(self, client, calls):
        client.cookies.set(SESSION_COOKIE_NAME, "not-a-session")
        response = client.get("/api/whoami")

        assert response.status_code == 401
        assert calls == []

    def test_rejection_does_not_touch_the_cookie(self, client):
        client.cookies.set(SESSION_COOKIE_NAME, "not-a-session")
        response = client.get("/api/whoami")

        assert "set-cookie" not in response.headers

    def test_unknown_path_under_mount_is_401_not_404(self, client):
        assert client.get("/api/nothing-here").status_code == 401


class TestAuthenticated:
    def test_handler_runs_with_user_id(self, client, make_session_token, calls):
        client.cookies.set(SESSION_COOKIE_NAME, make_session_token(42))
        response = client.get("/api/whoami")

        assert response.status_code == 202
        assert response.json() == {"user_id": 42}
        assert calls == ["whoami"]

    def test_handler_status_propagates_unchanged(self, client, make_session_token):
        client.cookies.set(SESSION_COOKIE_NAME, make_session_token(42))
        response = client.get("/api/fail")

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden"}
