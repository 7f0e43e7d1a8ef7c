"""Client for the core service's auth-check endpoint.

The edge layer shares no memory with the core, so every protected request
costs one round trip. Any failure (timeout, connection error, non-200)
counts as "not authenticated".
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Protocol

import anyio
import httpx
import structlog

from shared.protection import AUTH_CHECK_PATH, SESSION_COOKIE_NAME

if TYPE_CHECKING:
    from types import TracebackType

logger = structlog.get_logger()

DEFAULT_AUTH_CHECK_TIMEOUT_SECONDS = 5.0


class AuthChecker(Protocol):
    async def check(self, session_token: str) -> bool: ...


class AuthCheckClient:
    """Ask the core whether a session cookie is authenticated.

    Holds one pooled httpx.AsyncClient for the life of the edge process;
    call ``aclose()`` on shutdown.
    """

    def __init__(
        self,
        core_url: str,
        *,
        timeout: float = DEFAULT_AUTH_CHECK_TIMEOUT_SECONDS,
        cookie_name: str = SESSION_COOKIE_NAME,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("Auth check timeout must be positive")
        self._cookie_name = cookie_name
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=core_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
            follow_redirects=False,
        )

    async def check(self, session_token: str) -> bool:
        """Return True only if the core answered 200 for this session token.

        Empty and non-ASCII tokens are rejected without an outbound call.
        """
        if not session_token:
            return False
        if not session_token.isascii():
            # Browsers may send latin-1 bytes; such a value cannot be a token
            # the core issued and cannot go into an outbound header.
            logger.info("session cookie is not ASCII, denying")
            return False
        try:
            # httpx applies the timeout per phase; fail_after bounds the whole call.
            with anyio.fail_after(self._timeout):
                response = await self._client.get(
                    AUTH_CHECK_PATH,
                    headers={"Cookie": f"{self._cookie_name}={session_token}"},
                )
        except (httpx.TimeoutException, TimeoutError):
            logger.warning("auth check timed out")
            return False
        except httpx.HTTPError as e:
            logger.warning("auth check request failed", error=type(e).__name__)
            return False

        if response.status_code != HTTPStatus.OK:
            logger.info("auth check rejected session", status_code=response.status_code)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> AuthCheckClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
