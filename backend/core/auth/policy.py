"""Route auth policy for fail-closed startup validation.

Every top-level route of the core service must either be marked public with
``public_route`` or live under the protected ``/api`` mount that carries
``CoreAuthMiddleware``. ``validate_route_auth_policy`` refuses to start the
app otherwise, so a new endpoint cannot become public by omission.
"""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING

from starlette.routing import Mount, Route, WebSocketRoute

from core.auth.middleware import CoreAuthMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from starlette.routing import BaseRoute

AUTH_POLICY_ATTR = "__auth_policy__"


def public_route(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Mark endpoint as explicitly public (no session required).

    Returns a thin wrapper so the marker lives on the wrapper, not on the
    original callable.
    """
    if inspect.iscoroutinefunction(endpoint):

        @functools.wraps(endpoint)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return await endpoint(*args, **kwargs)

        setattr(async_wrapper, AUTH_POLICY_ATTR, "public")
        return async_wrapper

    @functools.wraps(endpoint)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        return endpoint(*args, **kwargs)

    setattr(sync_wrapper, AUTH_POLICY_ATTR, "public")
    return sync_wrapper


def _is_protected_mount(route: Mount) -> bool:
    # Mount.app is the router wrapped in the mount's middleware.
    return isinstance(route.app, CoreAuthMiddleware)


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Raise RuntimeError listing every route that is neither public nor protected."""
    unclassified: list[str] = []
    for route in routes:
        if isinstance(route, Mount):
            if not _is_protected_mount(route):
                unclassified.append(f"{route.path} (mount without auth middleware)")
            continue
        if isinstance(route, (Route, WebSocketRoute)) and not hasattr(route.endpoint, AUTH_POLICY_ATTR):
            name = route.name or getattr(route.endpoint, "__name__", "unknown")
            unclassified.append(f"{route.path} ({name})")

    if unclassified:
        details = ", ".join(unclassified)
        msg = f"Unclassified routes missing auth policy: {details}"
        raise RuntimeError(msg)
