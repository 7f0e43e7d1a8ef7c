"""Shared fixtures for edge layer tests."""

from __future__ import annotations

import httpx
import pytest

from edge.auth_check import AuthCheckClient

CORE_URL = "http://core.internal:8080"


class RecordingCore:
    """MockTransport handler standing in for the core service's auth-check endpoint."""

    def __init__(self, status_code: int = 200, exc: Exception | None = None) -> None:
        self.status_code = status_code
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status_code, json={"authenticated": self.status_code == 200})


@pytest.fixture
def core() -> RecordingCore:
    return RecordingCore()


@pytest.fixture
def auth_checker(core: RecordingCore) -> AuthCheckClient:
    return AuthCheckClient(CORE_URL, timeout=1.0, transport=httpx.MockTransport(core))
