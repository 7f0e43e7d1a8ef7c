"""JSON error envelope shared by the core service and the edge layer.

Every error a client sees is ``{"error": <message>}``; core handlers may add a
``details`` string for diagnostics. The edge layer never adds details.
"""

from __future__ import annotations

import json
from http import HTTPStatus

from starlette.responses import JSONResponse

UNAUTHORIZED = "Unauthorized"

# Status-code-to-message table used when a non-JSON error response is
# normalized. Anything not listed falls back to the 500 message.
_NORMALIZED_MESSAGES: dict[int, str] = {
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: UNAUTHORIZED,
    HTTPStatus.NOT_FOUND: "Not Found",
}
_FALLBACK_MESSAGE = "Internal Server Error"


def error_message_for(status_code: int) -> str:
    return _NORMALIZED_MESSAGES.get(status_code, _FALLBACK_MESSAGE)


def error_body(message: str, details: str | None = None) -> bytes:
    """Serialize an error envelope the same way JSONResponse does."""
    payload: dict[str, str] = {"error": message}
    if details is not None:
        payload["details"] = details
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def error_response(
    message: str,
    status_code: int,
    *,
    details: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload: dict[str, str] = {"error": message}
    if details is not None:
        payload["details"] = details
    return JSONResponse(payload, status_code=status_code, headers=headers)


def unauthorized_response() -> JSONResponse:
    """The one 401 body both layers send for missing or invalid sessions."""
    return error_response(UNAUTHORIZED, HTTPStatus.UNAUTHORIZED)
