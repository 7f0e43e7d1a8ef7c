"""Forward requests that passed route protection to the UI server."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

import httpx
import structlog
from starlette.responses import Response

from shared.errors import error_response

if TYPE_CHECKING:
    from starlette.requests import Request

logger = structlog.get_logger()

DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 30.0

# Connection-scoped headers that must not be copied between hops (RFC 9110 7.6.1).
_HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    },
)


def _forwardable(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(name, value) for name, value in headers if name.lower() not in _HOP_BY_HOP_HEADERS]


class UpstreamProxy:
    """Starlette endpoint relaying a request to ``upstream_url`` and back.

    Bodies are buffered; the UI server only serves pages and assets.
    """

    def __init__(
        self,
        upstream_url: str,
        *,
        timeout: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=upstream_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
            follow_redirects=False,
        )

    async def __call__(self, request: Request) -> Response:
        upstream_request = self._client.build_request(
            request.method,
            request.url.path,
            params=request.url.query,
            headers=_forwardable(request.headers.items()),
            content=await request.body(),
        )
        try:
            upstream_response = await self._client.send(upstream_request)
        except httpx.HTTPError as e:
            logger.warning("upstream request failed", path=request.url.path, error=type(e).__name__)
            return error_response("Bad Gateway", HTTPStatus.BAD_GATEWAY)

        response = Response(content=upstream_response.content, status_code=upstream_response.status_code)
        for name, value in _forwardable(upstream_response.headers.multi_items()):
            if name.lower() == "content-encoding":
                continue
            response.headers.append(name, value)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
