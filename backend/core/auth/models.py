"""Account and session models for the core service."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, EmailStr


class User(BaseModel, frozen=True):
    """Account stored in the user repository."""

    user_id: int
    email: EmailStr
    password_hash: str
    first_name: str
    last_name: str

    def public_dict(self) -> dict[str, int | str]:
        """Profile fields that may leave the service (no password hash)."""
        return {
            "id": self.user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }


@dataclass
class Session:
    """Decoded contents of the session cookie.

    ``user_id`` is only meaningful while ``authenticated`` is True; an
    anonymous session (no cookie, bad signature, expired) has neither.
    """

    authenticated: bool = False
    user_id: int | None = None
    session_id: str | None = None
    issued_at: float | None = None
    expires_at: float | None = None

    @property
    def is_principal(self) -> bool:
        return self.authenticated and self.user_id is not None
