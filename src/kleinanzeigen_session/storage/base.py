"""Base cookie store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from kleinanzeigen_session.models.cookies import CookieSet, parse_cookie_payload


class CookieStore(ABC):
    """
    Abstract per-account cookie persistence.

    Records are keyed by account key and always replaced whole.
    """

    @abstractmethod
    async def load_raw(self, key: str) -> str | None:
        """Return the stored record text, or None if absent."""
        ...

    @abstractmethod
    async def save(self, key: str, cookie_set: CookieSet) -> str:
        """Replace the record and return its reference."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the record. Returns False if nothing was stored."""
        ...

    @abstractmethod
    async def list_accounts(self) -> list[str]:
        """Keys of all stored records, sorted."""
        ...

    @abstractmethod
    def ref(self, key: str) -> str:
        """Opaque reference to where the record lives."""
        ...

    async def load(self, key: str) -> CookieSet | None:
        """
        Load and parse a record.

        Raises:
            CorruptCookieStoreError: If the stored text cannot be parsed
        """
        raw = await self.load_raw(key)
        if raw is None:
            return None
        return parse_cookie_payload(raw, key)

    async def exists(self, key: str) -> bool:
        """Check if a record is stored."""
        return await self.load_raw(key) is not None
