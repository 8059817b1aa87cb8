"""In-memory cookie store."""

from __future__ import annotations

import json

from kleinanzeigen_session.models.cookies import CookieSet
from kleinanzeigen_session.storage.base import CookieStore


class InMemoryCookieStore(CookieStore):
    """Keeps records as serialized text in a dict. Used by tests."""

    def __init__(self) -> None:
        self.records: dict[str, str] = {}
        self.save_count = 0

    def ref(self, key: str) -> str:
        return f"memory://{key}"

    async def load_raw(self, key: str) -> str | None:
        return self.records.get(key)

    async def save(self, key: str, cookie_set: CookieSet) -> str:
        self.records[key] = json.dumps(cookie_set.to_record())
        self.save_count += 1
        return self.ref(key)

    async def delete(self, key: str) -> bool:
        return self.records.pop(key, None) is not None

    async def list_accounts(self) -> list[str]:
        return sorted(self.records)

    def put_raw(self, key: str, raw: str) -> None:
        """Store arbitrary text, e.g. a corrupt record."""
        self.records[key] = raw
