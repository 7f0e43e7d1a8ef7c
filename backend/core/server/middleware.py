"""ASGI middleware for the core service.

``create_app`` installs these in a fixed order: CORS outermost, then error
normalization, then (on the ``/api`` mount only) ``CoreAuthMiddleware``.
Error responses produced further in therefore still carry CORS headers.
"""

from __future__ import annotations

import re
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response

from shared.errors import error_body, error_message_for, error_response

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.get_logger()

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization, X-Requested-With"
DEFAULT_PREFLIGHT_MAX_AGE = 86400

WEBSOCKET_PREFIXES: tuple[str, ...] = ("/ws/",)

_LOOPBACK_ORIGIN_RE = re.compile(r"^https?://(?:localhost|127\.0\.0\.1)(?::\d{1,5})?$")


class OriginPolicy:
    """Decide which ``Access-Control-Allow-Origin`` value, if any, a request gets.

    Loopback origins on any port and the configured frontend origin are
    echoed back exactly. With ``allow_unmatched`` every other request is
    granted the frontend origin instead of nothing; that keeps old clients
    working but lets any site make credentialed requests, so it is off
    unless configured.
    """

    def __init__(self, frontend_origin: str, *, allow_unmatched: bool = False) -> None:
        self._frontend_origin = frontend_origin.rstrip("/")
        self._allow_unmatched = allow_unmatched

    def is_allowed(self, origin: str) -> bool:
        return origin == self._frontend_origin or _LOOPBACK_ORIGIN_RE.match(origin) is not None

    def resolve(self, origin: str | None) -> str | None:
        if origin and self.is_allowed(origin):
            return origin
        if self._allow_unmatched:
            if origin:
                logger.warning("granting frontend origin to unmatched origin", origin=origin)
            return self._frontend_origin
        if origin:
            logger.debug("cors origin rejected", origin=origin)
        return None


class CORSMiddleware:
    """Set credentialed CORS headers for allowed origins and answer preflights.

    ``OPTIONS`` requests get an empty 200 here and never reach the app.
    WebSocket scopes pass through untouched.
    """

    def __init__(self, app: ASGIApp, *, policy: OriginPolicy, max_age: int = DEFAULT_PREFLIGHT_MAX_AGE) -> None:
        self.app = app
        self._policy = policy
        self._max_age = str(max_age)

    def _cors_headers(self, allowed_origin: str | None) -> dict[str, str]:
        if allowed_origin is None:
            return {}
        return {
            "Access-Control-Allow-Origin": allowed_origin,
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Access-Control-Max-Age": self._max_age,
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        allowed_origin = self._policy.resolve(Headers(scope=scope).get("origin"))
        cors_headers = self._cors_headers(allowed_origin)

        if scope["method"] == "OPTIONS":
            response = Response(status_code=HTTPStatus.OK, headers=cors_headers)
            response.headers.add_vary_header("Origin")
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.update(cors_headers)
                headers.add_vary_header("Origin")
            await send(message)

        await self.app(scope, receive, send_with_cors)


class ErrorNormalizingSend:
    """ASGI ``send`` interceptor that turns the first error response into the JSON envelope.

    A response start with status >= 400 and a non-JSON content type has its
    headers rewritten and its body replaced by ``{"error": <message>}``. Any
    ``application/json`` error passes through untouched, whatever its shape:
    handlers returning JSON errors must build them with
    ``shared.errors.error_response`` so they carry the envelope. The
    ``error_sent`` guard makes the rewrite happen at most once, so wrapping
    twice still yields a single body.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self._replacement: bytes | None = None
        self.error_sent = False
        self.response_started = False

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            self.response_started = True
            status = message["status"]
            if status >= HTTPStatus.BAD_REQUEST and not self.error_sent:
                self.error_sent = True
                self._rewrite_start(message, status)
            await self._send(message)
            return

        if message_type == "http.response.body" and self._replacement is not None:
            if message.get("more_body", False):
                return
            body, self._replacement = self._replacement, None
            await self._send({"type": "http.response.body", "body": body, "more_body": False})
            return

        await self._send(message)

    def _rewrite_start(self, message: Message, status: int) -> None:
        headers = MutableHeaders(scope=message)
        if headers.get("content-type", "").startswith("application/json"):
            return
        body = error_body(error_message_for(status))
        headers["content-type"] = "application/json"
        headers["content-length"] = str(len(body))
        self._replacement = body


class ErrorNormalizationMiddleware:
    """Give every HTTP error the same JSON envelope.

    Paths under ``exempt_prefixes`` (WebSocket endpoints) and non-HTTP scopes
    get the original ``send``: upgraded connections must keep their framing.
    Exceptions escaping the app become a normalized 500 when nothing has been
    sent yet.
    """

    def __init__(self, app: ASGIApp, *, exempt_prefixes: tuple[str, ...] = WEBSOCKET_PREFIXES) -> None:
        self.app = app
        self._exempt_prefixes = exempt_prefixes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"].startswith(self._exempt_prefixes):
            await self.app(scope, receive, send)
            return

        interceptor = ErrorNormalizingSend(send)
        try:
            await self.app(scope, receive, interceptor)
        except Exception:
            logger.exception("unhandled error", method=scope["method"], path=scope["path"])
            if interceptor.response_started:
                raise
            response = error_response(
                error_message_for(HTTPStatus.INTERNAL_SERVER_ERROR),
                HTTPStatus.INTERNAL_SERVER_ERROR,
            )
            await response(scope, receive, send)
