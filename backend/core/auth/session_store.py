"""Signed-cookie session store.

The whole session lives in the cookie, signed with HMAC-SHA256 under a
server-held secret, so the store keeps no per-session state and needs no
locking: concurrent requests only share the immutable secret and cookie
policy.

Token format: base64url(json_payload).base64url(hmac_sha256_signature), with
the base64 padding stripped so the value never needs cookie quoting.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import math
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import structlog

from core.auth.models import Session
from shared.protection import SESSION_COOKIE_NAME

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection
    from starlette.responses import Response

logger = structlog.get_logger()

SESSION_MAX_AGE_SECONDS = 7 * 24 * 60 * 60  # 7 days
CLOCK_SKEW_SECONDS = 60

_TOKEN_PARTS = 2


@dataclass(frozen=True)
class CookiePolicy:
    """Attributes set on the session cookie.

    HttpOnly is not configurable: the token must never be readable from script.
    """

    path: str = "/"
    max_age: int = SESSION_MAX_AGE_SECONDS
    samesite: Literal["lax", "strict", "none"] | None = None
    secure: bool = False
    httponly: bool = True

    @classmethod
    def for_environment(cls, *, production: bool) -> CookiePolicy:
        """Relaxed (SameSite/Secure omitted) in development; ``SameSite=None; Secure`` in production."""
        if production:
            return cls(samesite="none", secure=True)
        return cls()


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _is_finite_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class SessionStore:
    """Read, write and clear sessions carried in a signed cookie.

    Built once at startup and handed to the middleware and handlers that
    need it; nothing reads it from module state.
    """

    def __init__(
        self,
        secret: str,
        cookie_policy: CookiePolicy | None = None,
        *,
        cookie_name: str = SESSION_COOKIE_NAME,
    ) -> None:
        if not secret:
            raise ValueError("Session secret must not be empty")
        self._key = secret.encode("utf-8")
        self._policy = cookie_policy or CookiePolicy()
        self._cookie_name = cookie_name

    def login(self, user_id: int) -> Session:
        """Mint a fresh authenticated session for user_id (not yet saved)."""
        return Session(authenticated=True, user_id=user_id, session_id=secrets.token_urlsafe(16))

    def get(self, conn: HTTPConnection) -> Session:
        """Return the request's session, or an anonymous one if it cannot be trusted."""
        token = conn.cookies.get(self._cookie_name)
        if not token:
            return Session()
        return self.decode(token) or Session()

    def save(self, response: Response, session: Session) -> None:
        """Write the session to the response.

        An authenticated session is re-signed with a fresh max-age, so every
        save extends it. Anything else deletes the cookie.
        """
        if not session.is_principal:
            response.delete_cookie(
                key=self._cookie_name,
                path=self._policy.path,
                secure=self._policy.secure,
                httponly=self._policy.httponly,
                samesite=self._policy.samesite,
            )
            return

        now = time.time()
        session.issued_at = now
        session.expires_at = now + self._policy.max_age
        response.set_cookie(
            key=self._cookie_name,
            value=self.encode(session),
            max_age=self._policy.max_age,
            path=self._policy.path,
            secure=self._policy.secure,
            httponly=self._policy.httponly,
            samesite=self._policy.samesite,
        )

    def clear(self, session: Session) -> None:
        """Drop the identity from session; a following save() removes the cookie."""
        session.authenticated = False
        session.user_id = None
        session.session_id = None

    def encode(self, session: Session) -> str:
        payload = {
            "authenticated": session.authenticated,
            "user_id": session.user_id,
            "sid": session.session_id,
            "iat": session.issued_at,
            "exp": session.expires_at,
        }
        payload_bytes = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
        sig = hmac.new(self._key, payload_bytes, hashlib.sha256).digest()
        return f"{_b64encode(payload_bytes)}.{_b64encode(sig)}"

    def decode(self, token: str) -> Session | None:
        """Verify signature and expiry. Returns None on any failure."""
        parts = token.split(".")
        if len(parts) != _TOKEN_PARTS:
            return None

        try:
            payload_bytes = _b64decode(parts[0])
            provided_sig = _b64decode(parts[1])
        except (ValueError, binascii.Error):
            return None

        expected_sig = hmac.new(self._key, payload_bytes, hashlib.sha256).digest()
        if not hmac.compare_digest(provided_sig, expected_sig):
            logger.debug("session cookie signature mismatch")
            return None

        try:
            data = json.loads(payload_bytes)
        except json.JSONDecodeError:
            logger.debug("session cookie malformed payload")
            return None
        if not isinstance(data, dict):
            return None

        session = _session_from_payload(data)
        if session is None or not self._timestamps_valid(session):
            return None
        return session

    def _timestamps_valid(self, session: Session) -> bool:
        if not _is_finite_number(session.issued_at) or not _is_finite_number(session.expires_at):
            logger.debug("session cookie non-finite timestamp")
            return False

        now = time.time()
        if session.issued_at > now + CLOCK_SKEW_SECONDS:
            logger.debug("session cookie issued in the future")
            return False
        if session.expires_at - session.issued_at > self._policy.max_age + CLOCK_SKEW_SECONDS:
            logger.debug("session cookie lifetime too long")
            return False
        if now > session.expires_at:
            logger.debug("session cookie expired")
            return False
        return True


def _session_from_payload(data: dict) -> Session | None:
    authenticated = data.get("authenticated")
    user_id = data.get("user_id")
    session_id = data.get("sid")
    if authenticated is not True:
        return None
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        return None
    if session_id is not None and not isinstance(session_id, str):
        return None
    return Session(
        authenticated=True,
        user_id=user_id,
        session_id=session_id,
        issued_at=data.get("iat"),
        expires_at=data.get("exp"),
    )
