"""Cookie persistence backends."""

from kleinanzeigen_session.storage.base import CookieStore
from kleinanzeigen_session.storage.json_storage import JsonCookieStore
from kleinanzeigen_session.storage.memory_storage import InMemoryCookieStore


__all__ = ["CookieStore", "InMemoryCookieStore", "JsonCookieStore"]
