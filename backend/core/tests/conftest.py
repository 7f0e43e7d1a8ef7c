"""Shared fixtures for core service tests."""

from __future__ import annotations

import pytest
from starlette.responses import Response
from starlette.testclient import TestClient

from core.auth.file_repository import FileUserRepository
from core.auth.service import AuthService
from core.auth.session_store import SessionStore
from core.server.app import create_app
from core.server.settings import CoreServerSettings
from shared.auth.password import SimpleHasher

TEST_SECRET = "test-session-secret-0123456789"
STRONG_PASSWORD = "Str0ng!Pass"


@pytest.fixture
def settings(tmp_path) -> CoreServerSettings:
    return CoreServerSettings(
        session_secret=TEST_SECRET,
        frontend_origin="https://social.example.com",
        users_file=str(tmp_path / "users.json"),
        password_hasher="simple",
    )


@pytest.fixture
def user_repo(tmp_path) -> FileUserRepository:
    return FileUserRepository(tmp_path / "users.json")


@pytest.fixture
def auth_service(user_repo: FileUserRepository) -> AuthService:
    return AuthService(user_repo, password_hasher=SimpleHasher())


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore(TEST_SECRET)


@pytest.fixture
def client(settings: CoreServerSettings) -> TestClient:
    return TestClient(create_app(settings))


@pytest.fixture
def make_session_token(session_store: SessionStore):
    """Return a function minting a valid session cookie value for a user id."""

    def _make(user_id: int) -> str:
        response = Response()
        session_store.save(response, session_store.login(user_id))
        return response.headers["set-cookie"].split(";", 1)[0].split("=", 1)[1]

    return _make
