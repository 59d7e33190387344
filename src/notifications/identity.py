"""Recipient lookup for email notifications."""

from abc import ABC, abstractmethod


class IdentityResolver(ABC):
    """Maps a user to the address alert emails go to."""

    @abstractmethod
    async def get_user_email(self, user_id: str) -> str | None:
        """Return the user's email address, or None if unknown."""


class StaticIdentityResolver(IdentityResolver):
    """Resolves addresses from a fixed mapping (CLI use and tests)."""

    def __init__(self, mapping: dict[str, str] | None = None) -> None:
        self._mapping = dict(mapping or {})

    def set_email(self, user_id: str, email: str) -> None:
        self._mapping[user_id] = email

    async def get_user_email(self, user_id: str) -> str | None:
        email = self._mapping.get(user_id)
        return email or None
