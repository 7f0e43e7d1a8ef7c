"""Password hashing for stored user credentials.

Only hashes are ever persisted. ``BcryptHasher`` is what the core service
runs with; each call takes tens of milliseconds of CPU, so the work is
pushed to a worker thread with ``anyio.to_thread.run_sync`` to keep the
event loop serving other requests during a login.

``SimpleHasher`` is an unsalted SHA-256 stand-in selected with
``CORE_PASSWORD_HASHER=simple`` so the test suite does not pay bcrypt's cost.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Protocol, runtime_checkable

import bcrypt
from anyio import to_thread

# bcrypt silently ignores input past 72 bytes; longer passwords are rejected.
BCRYPT_MAX_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 10

_SIMPLE_PREFIX = "sha256$"


@runtime_checkable
class PasswordHasher(Protocol):
    async def hash(self, plain: str) -> str: ...

    async def verify(self, plain: str, hashed: str) -> bool: ...


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > BCRYPT_MAX_BYTES


class BcryptHasher:
    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._rounds = rounds

    async def hash(self, plain: str) -> str:
        if password_too_long(plain):
            raise ValueError(f"Password exceeds {BCRYPT_MAX_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self._rounds)
        hashed = await to_thread.run_sync(bcrypt.hashpw, plain.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    async def verify(self, plain: str, hashed: str) -> bool:
        """Compare ``plain`` against a stored hash.

        A malformed stored hash counts as a mismatch instead of an error, and
        so does an over-long candidate (newer bcrypt releases raise on it).
        """
        if password_too_long(plain):
            return False
        try:
            return await to_thread.run_sync(bcrypt.checkpw, plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False


class SimpleHasher:
    """Unsalted SHA-256. Never configure this outside tests."""

    async def hash(self, plain: str) -> str:
        return _SIMPLE_PREFIX + hashlib.sha256(plain.encode("utf-8")).hexdigest()

    async def verify(self, plain: str, hashed: str) -> bool:
        if not hashed.startswith(_SIMPLE_PREFIX):
            return False
        return hmac.compare_digest(hashed, await self.hash(plain))


def get_hasher(name: str = "bcrypt") -> PasswordHasher:
    if name == "bcrypt":
        return BcryptHasher()
    if name == "simple":
        return SimpleHasher()
    raise ValueError(f"Unknown password hasher: {name!r}")
