"""JSON file cookie store."""

from __future__ import annotations

import json
import os
from pathlib import Path

import aiofiles

from kleinanzeigen_session.exceptions import CookieStoreError
from kleinanzeigen_session.models.cookies import CookieSet
from kleinanzeigen_session.storage.base import CookieStore
from kleinanzeigen_session.utils.logging import get_logger


logger = get_logger(__name__)

FILE_PREFIX = "cookies-"
FILE_SUFFIX = ".json"


class JsonCookieStore(CookieStore):
    """Store each account's cookies as ``cookies-<key>.json``."""

    def __init__(self, cookies_dir: str | Path = "./data/cookies") -> None:
        self.cookies_dir = Path(cookies_dir)
        self.cookies_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.cookies_dir / f"{FILE_PREFIX}{key}{FILE_SUFFIX}"

    def ref(self, key: str) -> str:
        return str(self._path(key))

    async def load_raw(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            logger.debug("Cookie file not found", path=str(path))
            return None
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                return await f.read()
        except OSError as e:
            raise CookieStoreError(f"Failed to read {path}: {e}") from e

    async def save(self, key: str, cookie_set: CookieSet) -> str:
        """
        Replace the account's cookie file.

        Writes to a temporary file first and swaps it in, so readers never
        see a partial record.
        """
        path = self._path(key)
        tmp_path = path.with_suffix(f"{FILE_SUFFIX}.tmp")
        content = json.dumps(cookie_set.to_record(), indent=2, ensure_ascii=False)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            raise CookieStoreError(f"Failed to write {path}: {e}") from e
        logger.info("Cookies saved", path=str(path), count=len(cookie_set))
        return str(path)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CookieStoreError(f"Failed to delete {path}: {e}") from e
        logger.info("Cookie file deleted", path=str(path))
        return True

    async def list_accounts(self) -> list[str]:
        keys = [
            p.name[len(FILE_PREFIX) : -len(FILE_SUFFIX)]
            for p in self.cookies_dir.glob(f"{FILE_PREFIX}*{FILE_SUFFIX}")
            if p.is_file()
        ]
        return sorted(k for k in keys if k)
