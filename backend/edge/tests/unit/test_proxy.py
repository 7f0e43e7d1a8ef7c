"""Tests for the upstream UI proxy."""

from __future__ import annotations

import httpx
import pytest
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from edge.proxy import UpstreamProxy

UI_URL = "http://ui.internal:3000"


class RecordingUpstream:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            201,
            content=b"<html>ok</html>",
            headers={"Content-Type": "text/html", "X-Upstream": "yes", "Connection": "keep-alive"},
        )


def _client(handler) -> TestClient:
    proxy = UpstreamProxy(UI_URL, transport=httpx.MockTransport(handler))

    async def forward(request):
        return await proxy(request)

    app = Starlette(routes=[Route("/{path:path}", forward, methods=["GET", "POST"])])
    return TestClient(app)


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


class TestUpstreamProxy:
    def test_relays_status_body_and_headers(self, upstream):
        response = _client(upstream).get("/about")

        assert response.status_code == 201
        assert response.text == "<html>ok</html>"
        assert response.headers["x-upstream"] == "yes"
        assert response.headers["content-type"] == "text/html"

    def test_forwards_method_path_query_and_body(self, upstream):
        _client(upstream).post("/posts/new?draft=1", content=b"title=hi")

        request = upstream.requests[0]
        assert request.method == "POST"
        assert str(request.url) == UI_URL + "/posts/new?draft=1"
        assert request.content == b"title=hi"

    def test_strips_hop_by_hop_headers(self, upstream):
        response = _client(upstream).get("/about", headers={"Connection": "close", "X-Custom": "1"})

        request = upstream.requests[0]
        assert "connection" not in request.headers or request.headers["connection"] != "close"
        assert request.headers["x-custom"] == "1"
        assert request.headers["host"] == "ui.internal:3000"
        assert response.headers.get("connection") != "keep-alive"

    def test_forwards_cookies(self, upstream):
        client = _client(upstream)
        client.cookies.set("theme", "dark")
        client.get("/about")

        assert "theme=dark" in upstream.requests[0].headers["cookie"]

    def test_unreachable_upstream_is_502(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        response = _client(refuse).get("/about")

        assert response.status_code == 502
        assert response.json() == {"error": "Bad Gateway"}
