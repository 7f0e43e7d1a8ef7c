"""Route-protection configuration shared by the edge layer and the core service.

The edge decides which page paths need a session and forwards the session
cookie to the core's auth-check endpoint; the core sets that cookie and
serves that endpoint. Keeping the names here means the two deployables
cannot disagree about either.
"""

from __future__ import annotations

from urllib.parse import urlencode

SESSION_COOKIE_NAME = "social-network-session"
AUTH_CHECK_PATH = "/api/auth/check"
LOGIN_PATH = "/login"
API_PREFIX = "/api/"

PROTECTED_PREFIXES: tuple[str, ...] = (
    "/dashboard",
    "/profile",
    "/posts",
    "/groups",
    "/chats",
)

# Never used as a post-login redirect target.
_NO_REDIRECT_PATHS = frozenset({"/", LOGIN_PATH})


def is_protected_path(path: str, prefixes: tuple[str, ...] = PROTECTED_PREFIXES) -> bool:
    """Return True if path is a protected prefix or lies below one.

    Matching is per path segment: ``/posts`` and ``/posts/12`` match the
    ``/posts`` prefix, ``/postsx`` does not.
    """
    return any(path == prefix or path.startswith(prefix + "/") for prefix in prefixes)


def is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIX)


def login_redirect_url(path: str) -> str:
    """Build the relative login URL that carries the original path back after login."""
    if path in _NO_REDIRECT_PATHS:
        return LOGIN_PATH
    return f"{LOGIN_PATH}?{urlencode({'redirect': path}, safe='/')}"
