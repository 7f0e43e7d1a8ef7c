"""JSON-file account store for single-process deployments.

On-disk shape::

    {"next_id": 3, "users": [{"user_id": 1, "email": ..., ...}, ...]}

``next_id`` is kept separately from the records so ids are never handed out
twice, even if a record is removed from the file by hand.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from core.auth.models import User
from core.auth.repository import UserRepository

logger = structlog.get_logger()

_FILE_MODE = 0o600


def _write_atomic(path: Path, content: bytes) -> None:
    """Write to a temp file beside path, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), _FILE_MODE)
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise


class FileUserRepository(UserRepository):
    """Accounts held in memory, with the whole file rewritten on every change.

    One asyncio.Lock guards both the lazy first read and writes. Several
    processes sharing one file are not supported.
    """

    def __init__(self, file_path: str | Path) -> None:
        self._path = Path(file_path)
        self._users: dict[int, User] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()
        self._loaded = False

    async def _load_once(self) -> None:
        async with self._lock:
            if not self._loaded:
                self._read()
                self._loaded = True

    def _read(self) -> None:
        # A missing file is an empty store; an unreadable one must stop us
        # before the next write replaces it.
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise OSError(f"Failed to load users from {self._path}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("users"), list):
            raise OSError(f"Expected a users object in {self._path}")

        try:
            users = [User.model_validate(record) for record in raw["users"]]
        except ValidationError as exc:
            raise OSError(f"Failed to parse user data from {self._path}") from exc

        self._users = {user.user_id: user for user in users}
        stored_next = raw.get("next_id")
        self._next_id = max(
            stored_next if isinstance(stored_next, int) else 1,
            max(self._users, default=0) + 1,
        )
        logger.info("loaded user accounts", count=len(self._users), path=str(self._path))

    def _write(self) -> None:
        document = {
            "next_id": self._next_id,
            "users": [user.model_dump() for user in self._users.values()],
        }
        _write_atomic(self._path, json.dumps(document, indent=2).encode("utf-8"))

    def _lookup_email(self, email: str) -> User | None:
        wanted = email.casefold()
        for user in self._users.values():
            if user.email.casefold() == wanted:
                return user
        return None

    async def create_user(self, email: str, password_hash: str, first_name: str, last_name: str) -> User:
        await self._load_once()
        async with self._lock:
            if self._lookup_email(email) is not None:
                raise ValueError(f"Email '{email}' is already registered")

            user = User(
                user_id=self._next_id,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
            )
            self._users[user.user_id] = user
            self._next_id += 1
            try:
                self._write()
            except OSError:
                self._users.pop(user.user_id)
                self._next_id -= 1
                raise
        return user

    async def get_by_email(self, email: str) -> User | None:
        await self._load_once()
        return self._lookup_email(email)

    async def get_by_id(self, user_id: int) -> User | None:
        await self._load_once()
        return self._users.get(user_id)
