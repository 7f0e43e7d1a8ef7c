"""Core service authentication: session store, auth middleware, accounts."""

from core.auth.middleware import CoreAuthMiddleware
from core.auth.models import Session, User
from core.auth.service import AuthError, AuthService
from core.auth.session_store import CookiePolicy, SessionStore

__all__ = [
    "AuthError",
    "AuthService",
    "CookiePolicy",
    "CoreAuthMiddleware",
    "Session",
    "SessionStore",
    "User",
]
