from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.routing import Mount, Route, WebSocketRoute

from core.auth.file_repository import FileUserRepository
from core.auth.middleware import CoreAuthMiddleware
from core.auth.policy import public_route, validate_route_auth_policy
from core.auth.service import AuthService
from core.auth.session_store import CookiePolicy, SessionStore
from core.server.middleware import CORSMiddleware, ErrorNormalizationMiddleware, OriginPolicy
from core.server.settings import CoreServerSettings
from core.views.auth_handlers import check_auth, health, login, logout, password_check, profile, register
from core.views.chat import chat_websocket
from shared.auth.password import get_hasher
from shared.logging import setup_logging
from shared.protection import AUTH_CHECK_PATH

if TYPE_CHECKING:
    from core.auth.repository import UserRepository
    from shared.auth.password import PasswordHasher

logger = structlog.get_logger()


def create_app(
    settings: CoreServerSettings | None = None,
    *,
    user_repo: UserRepository | None = None,
    password_hasher: PasswordHasher | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = CoreServerSettings()  # type: ignore[call-arg]

    session_store = SessionStore(
        settings.session_secret,
        CookiePolicy.for_environment(production=settings.is_production),
    )
    if user_repo is None:
        user_repo = FileUserRepository(settings.users_file)
    if password_hasher is None:
        password_hasher = get_hasher(settings.password_hasher)
    auth_service = AuthService(user_repo, password_hasher=password_hasher)

    # Everything under /api that is not matched by a public route above the
    # mount requires a session, including unknown paths (401, not 404).
    protected_api = Mount(
        "/api",
        routes=[
            Route("/profile", profile, methods=["GET"], name="profile"),
            Route("/logout", logout, methods=["POST"], name="logout"),
        ],
        middleware=[Middleware(CoreAuthMiddleware, session_store=session_store)],
        name="protected_api",
    )

    routes = [
        Route("/health", public_route(health), methods=["GET"], name="health"),
        Route("/api/register", public_route(register), methods=["POST"], name="register"),
        Route("/api/login", public_route(login), methods=["POST"], name="login"),
        Route(AUTH_CHECK_PATH, public_route(check_auth), methods=["GET"], name="check_auth"),
        Route("/api/password/check", public_route(password_check), methods=["POST"], name="password_check"),
        WebSocketRoute("/ws/chat", public_route(chat_websocket), name="chat_websocket"),
        protected_api,
    ]
    validate_route_auth_policy(routes)

    origin_policy = OriginPolicy(
        settings.frontend_origin,
        allow_unmatched=settings.cors_allow_unmatched_origins,
    )
    if settings.cors_allow_unmatched_origins:
        logger.warning("CORS fallback enabled: unmatched origins receive the frontend origin")

    # Listed outermost first. CORS must run before error normalization so
    # normalized errors still carry CORS headers.
    middleware = [
        Middleware(CORSMiddleware, policy=origin_policy, max_age=settings.cors_max_age),
        Middleware(ErrorNormalizationMiddleware),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.settings = settings
    app.state.session_store = session_store
    app.state.auth_service = auth_service

    logger.info("core service ready", environment=settings.environment)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory core.server.app:get_app."""
    settings = CoreServerSettings()  # type: ignore[call-arg]
    setup_logging("core", log_dir=settings.log_dir)
    return create_app(settings)
