"""Auth endpoints: register, login, logout, auth-check, profile and password feedback."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse

from core.auth.service import AuthError
from shared.auth.password_policy import score_password, validate_password
from shared.errors import error_response, unauthorized_response

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from core.auth.service import AuthService
    from core.auth.session_store import SessionStore

logger = structlog.get_logger()

_REGISTER_FIELDS = ("email", "password", "first_name", "last_name")
_LOGIN_FIELDS = ("email", "password")


async def _parse_json_body(request: Request) -> dict | None:
    """Parse JSON body from request. Return None on failure."""
    try:
        body = await request.json()
    except (ValueError, json.JSONDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    return body


async def _read_fields(request: Request, names: tuple[str, ...]) -> dict[str, str] | None:
    """Read string fields from a JSON or form body. Non-string values read as empty."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        body = await _parse_json_body(request)
        if body is None:
            return None
    else:
        body = await request.form()

    fields: dict[str, str] = {}
    for name in names:
        value = body.get(name)
        fields[name] = value if isinstance(value, str) else ""
    return fields


def _auth_error_response(e: AuthError) -> JSONResponse:
    return error_response(e.message, e.status_code, details=e.details)


async def register(request: Request) -> Response:
    """POST /api/register - create an account (does not log in)."""
    auth_service: AuthService = request.app.state.auth_service

    fields = await _read_fields(request, _REGISTER_FIELDS)
    if fields is None:
        return error_response("Invalid JSON request body", HTTPStatus.BAD_REQUEST)

    try:
        user = await auth_service.register(
            fields["email"],
            fields["password"],
            fields["first_name"],
            fields["last_name"],
        )
    except AuthError as e:
        return _auth_error_response(e)

    return JSONResponse(
        {"message": "User registered successfully", "user": user.public_dict()},
        status_code=HTTPStatus.CREATED,
    )


async def login(request: Request) -> Response:
    """POST /api/login - check credentials and set the session cookie."""
    auth_service: AuthService = request.app.state.auth_service
    session_store: SessionStore = request.app.state.session_store

    fields = await _read_fields(request, _LOGIN_FIELDS)
    if fields is None:
        return error_response("Invalid JSON request body", HTTPStatus.BAD_REQUEST)

    try:
        user = await auth_service.authenticate(fields["email"], fields["password"])
    except AuthError as e:
        return _auth_error_response(e)

    session = session_store.login(user.user_id)
    response = JSONResponse({"message": "Login successful", "user": user.public_dict()})
    session_store.save(response, session)
    logger.info("user logged in", user_id=user.user_id)
    return response


async def logout(request: Request) -> Response:
    """POST /api/logout - clear the session and delete the cookie."""
    session_store: SessionStore = request.app.state.session_store
    session = request.state.session
    user_id = session.user_id

    session_store.clear(session)
    response = JSONResponse({"message": "Logout successful"})
    session_store.save(response, session)
    logger.info("user logged out", user_id=user_id)
    return response


async def check_auth(request: Request) -> Response:
    """GET /api/auth/check - 200 for an authenticated session, 401 otherwise.

    The edge layer calls this with the browser's session cookie before
    letting a protected page through.
    """
    session_store: SessionStore = request.app.state.session_store
    session = session_store.get(request)
    if not session.is_principal:
        return unauthorized_response()
    return JSONResponse({"authenticated": True, "user_id": session.user_id})


async def profile(request: Request) -> Response:
    """GET /api/profile - the logged-in user's account."""
    auth_service: AuthService = request.app.state.auth_service
    user = await auth_service.get_user(request.state.user_id)
    if user is None:
        return error_response("User not found", HTTPStatus.NOT_FOUND)
    return JSONResponse(user.public_dict())


async def password_check(request: Request) -> Response:
    """POST /api/password/check {password} - strength feedback for the registration form."""
    body = await _parse_json_body(request)
    if body is None:
        return error_response("Invalid JSON request body", HTTPStatus.BAD_REQUEST)

    password = body.get("password")
    if not isinstance(password, str):
        return error_response("password is required as a string", HTTPStatus.BAD_REQUEST)

    result = validate_password(password)
    return JSONResponse(
        {
            "valid": result.valid,
            "violations": list(result.violations),
            "score": score_password(password),
        },
    )


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})
