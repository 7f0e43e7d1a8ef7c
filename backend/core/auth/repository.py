"""Abstract interface for account persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.auth.models import User


class UserRepository(ABC):
    """Account lookups the auth service needs.

    The core only needs enough persistence to verify credentials and mint
    sessions; richer profile storage lives with the business entities.
    """

    @abstractmethod
    async def create_user(self, email: str, password_hash: str, first_name: str, last_name: str) -> User:
        """Store a new account and return it with its assigned integer id.

        Raises ValueError if the email is already registered.
        """

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def get_by_id(self, user_id: int) -> User | None: ...
