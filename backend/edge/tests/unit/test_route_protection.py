"""Tests for the edge route-protection middleware."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from edge.auth_check import AuthCheckClient
from edge.middleware import RouteProtectionMiddleware, deny_response
from shared.protection import SESSION_COOKIE_NAME

if TYPE_CHECKING:
    from starlette.requests import Request


class FakeChecker:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.tokens: list[str] = []

    async def check(self, session_token: str) -> bool:
        self.tokens.append(session_token)
        return self.result


def _make_app(checker, protected_prefixes: tuple[str, ...] | None = None) -> Starlette:
    async def page(request: Request) -> PlainTextResponse:
        return PlainTextResponse(f"page {request.url.path}")

    options = {"auth_checker": checker}
    if protected_prefixes is not None:
        options["protected_prefixes"] = protected_prefixes
    return Starlette(
        routes=[Route("/{path:path}", page, methods=["GET", "POST"])],
        middleware=[Middleware(RouteProtectionMiddleware, **options)],
    )


@pytest.fixture
def checker() -> FakeChecker:
    return FakeChecker()


@pytest.fixture
def client(checker) -> TestClient:
    return TestClient(_make_app(checker), follow_redirects=False)


class TestUnprotectedPaths:
    @pytest.mark.parametrize("path", ["/", "/login", "/register", "/postsx", "/static/app.js"])
    def test_forwarded_without_check(self, client, checker, path):
        response = client.get(path)

        assert response.status_code == 200
        assert checker.tokens == []


class TestProtectedPaths:
    def test_no_cookie_redirects_to_login_without_check(self, client, checker):
        response = client.get("/dashboard")

        assert response.status_code == 302
        assert response.headers["location"] == "/login?redirect=/dashboard"
        assert checker.tokens == []

    def test_empty_cookie_denied_without_check(self, client, checker):
        client.cookies.set(SESSION_COOKIE_NAME, "")
        response = client.get("/posts/12")

        assert response.status_code == 302
        assert checker.tokens == []

    def test_nested_path_preserved_in_redirect(self, client):
        response = client.get("/groups/3/events")
        assert response.headers["location"] == "/login?redirect=/groups/3/events"

    def test_authenticated_session_passes(self, client, checker):
        client.cookies.set(SESSION_COOKIE_NAME, "good-token")
        response = client.get("/profile")

        assert response.status_code == 200
        assert response.text == "page /profile"
        assert checker.tokens == ["good-token"]

    def test_rejected_session_redirects(self, client, checker):
        checker.result = False
        client.cookies.set(SESSION_COOKIE_NAME, "stale-token")
        response = client.get("/chats")

        assert response.status_code == 302
        assert response.headers["location"] == "/login?redirect=/chats"

    def test_other_cookies_are_ignored(self, client, checker):
        client.cookies.set("session", "wrong-name")
        response = client.get("/dashboard")

        assert response.status_code == 302
        assert checker.tokens == []

    def test_non_ascii_cookie_redirects_without_core_call(self):
        core_calls: list[httpx.Request] = []

        def core(request: httpx.Request) -> httpx.Response:
            core_calls.append(request)
            return httpx.Response(200)

        auth_checker = AuthCheckClient("http://core.internal:8080", transport=httpx.MockTransport(core))
        client = TestClient(_make_app(auth_checker), follow_redirects=False)
        response = client.get("/dashboard", headers={"cookie": f"{SESSION_COOKIE_NAME}=caf\xe9".encode("latin-1")})

        assert response.status_code == 302
        assert response.headers["location"] == "/login?redirect=/dashboard"
        assert core_calls == []


class TestApiPaths:
    @pytest.fixture
    def api_client(self, checker) -> TestClient:
        return TestClient(_make_app(checker, ("/api/profile",)), follow_redirects=False)

    def test_no_cookie_is_401_json(self, api_client, checker):
        response = api_client.get("/api/profile")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert checker.tokens == []

    def test_non_ascii_cookie_is_401_json(self):
        auth_checker = AuthCheckClient("http://core.internal:8080", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        client = TestClient(_make_app(auth_checker, ("/api/profile",)))
        response = client.get("/api/profile", headers={"cookie": f"{SESSION_COOKIE_NAME}=caf\xe9".encode("latin-1")})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_rejected_session_is_401_json(self, api_client, checker):
        checker.result = False
        api_client.cookies.set(SESSION_COOKIE_NAME, "stale-token")
        response = api_client.get("/api/profile")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}


class TestDenyResponse:
    def test_page_redirect(self):
        response = deny_response("/dashboard")
        assert response.status_code == 302
        assert response.headers["location"] == "/login?redirect=/dashboard"

    def test_api_401(self):
        assert deny_response("/api/profile").status_code == 401

    @pytest.mark.parametrize("path", ["/", "/login"])
    def test_no_redirect_loop(self, path):
        assert deny_response(path).headers["location"] == "/login"
