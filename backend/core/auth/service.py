"""Auth service coordinating registration and credential checks."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from pydantic import EmailStr, TypeAdapter, ValidationError

from shared.auth.password import BCRYPT_MAX_BYTES, password_too_long
from shared.auth.password_policy import validate_password

if TYPE_CHECKING:
    from core.auth.models import User
    from core.auth.repository import UserRepository
    from shared.auth.password import PasswordHasher

logger = structlog.get_logger()

NAME_MAX_LENGTH = 50

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


class AuthError(Exception):
    """Registration or login failure carrying the HTTP status to report."""

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_REQUEST, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class AuthService:
    """Register accounts and check credentials.

    Session minting is left to the session store so this service never
    touches cookies.
    """

    def __init__(self, user_repo: UserRepository, *, password_hasher: PasswordHasher) -> None:
        self._user_repo = user_repo
        self._hasher = password_hasher

    async def register(self, email: str, password: str, first_name: str, last_name: str) -> User:
        email = _validate_email(email)
        first_name = _validate_name("First name", first_name)
        last_name = _validate_name("Last name", last_name)
        _validate_password(password)

        if await self._user_repo.get_by_email(email) is not None:
            raise AuthError("Email already registered", HTTPStatus.CONFLICT)

        password_hash = await self._hasher.hash(password)
        try:
            user = await self._user_repo.create_user(email, password_hash, first_name, last_name)
        except ValueError as e:
            raise AuthError("Email already registered", HTTPStatus.CONFLICT) from e
        logger.info("user registered", user_id=user.user_id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Return the account for valid credentials, else raise AuthError (401)."""
        if not email or not password:
            raise AuthError("Email and password are required")
        user = await self._user_repo.get_by_email(email.strip())
        if user is None or not await self._hasher.verify(password, user.password_hash):
            raise AuthError("Invalid credentials", HTTPStatus.UNAUTHORIZED)
        return user

    async def get_user(self, user_id: int) -> User | None:
        return await self._user_repo.get_by_id(user_id)


def _validate_email(email: str) -> str:
    try:
        return _EMAIL_ADAPTER.validate_python(email.strip())
    except ValidationError as e:
        raise AuthError("Invalid email address") from e


def _validate_name(label: str, value: str) -> str:
    value = value.strip()
    if not value:
        raise AuthError(f"{label} is required")
    if len(value) > NAME_MAX_LENGTH:
        raise AuthError(f"{label} must not exceed {NAME_MAX_LENGTH} characters")
    return value


def _validate_password(password: str) -> None:
    """Apply the strength policy, then the bcrypt input limit."""
    result = validate_password(password)
    if not result.valid:
        raise AuthError("Password does not meet requirements", details="; ".join(result.violations))
    if password_too_long(password):
        raise AuthError(f"Password must not exceed {BCRYPT_MAX_BYTES} bytes when encoded")
