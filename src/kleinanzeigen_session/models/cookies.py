"""Cookie data models and their stored JSON shape."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from kleinanzeigen_session.exceptions import CorruptCookieStoreError
from kleinanzeigen_session.utils.constants import MAX_EPOCH_SECONDS


class ValidationMethod(str, Enum):
    """How a validation result was obtained."""

    EXPIRY_ONLY = "expiry-only"
    LIVE_PROBE = "live-probe"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Cookie:
    """A single browser cookie (CDP / puppeteer field layout)."""

    name: str
    value: str
    domain: str = ""
    path: str = "/"
    expires: float | None = None  # epoch seconds; None or <= 0 means session
    http_only: bool = False
    secure: bool = False
    session: bool = False
    same_site: str | None = None

    @property
    def is_session(self) -> bool:
        """True when the cookie carries no absolute expiry."""
        return self.expires is None or self.expires <= 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cookie:
        """
        Build from browser JSON (``httpOnly``/``sameSite`` keys).

        Raises:
            ValueError: If ``expires`` is not a representable timestamp
        """
        expires = data.get("expires")
        if isinstance(expires, (int, float)) and (
            not math.isfinite(expires) or expires > MAX_EPOCH_SECONDS
        ):
            raise ValueError(f"expires out of range: {expires}")
        return cls(
            name=str(data["name"]),
            value=str(data.get("value", "")),
            domain=data.get("domain") or "",
            path=data.get("path") or "/",
            expires=float(expires) if isinstance(expires, (int, float)) else None,
            http_only=bool(data.get("httpOnly", data.get("http_only", False))),
            secure=bool(data.get("secure", False)),
            session=bool(data.get("session", False)),
            same_site=data.get("sameSite", data.get("same_site")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to browser JSON."""
        data: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires if self.expires is not None else -1,
            "httpOnly": self.http_only,
            "secure": self.secure,
            "session": self.session or self.is_session,
        }
        if self.same_site:
            data["sameSite"] = self.same_site
        return data


@dataclass
class CookieSet:
    """All cookies that make up one account's marketplace session."""

    cookies: list[Cookie] = field(default_factory=list)
    account: str | None = None
    saved_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.cookies)

    def __iter__(self):
        return iter(self.cookies)

    def __bool__(self) -> bool:
        return bool(self.cookies)

    @classmethod
    def from_browser(
        cls,
        cookies: list[dict[str, Any]],
        account: str | None = None,
    ) -> CookieSet:
        """Build from the cookie list a browser page returns."""
        return cls(
            cookies=[Cookie.from_dict(c) for c in cookies if c.get("name")],
            account=account,
            saved_at=datetime.now(timezone.utc),
        )

    def to_browser(self) -> list[dict[str, Any]]:
        """Cookie list suitable for injecting into a page."""
        return [c.to_dict() for c in self.cookies]

    def to_record(self) -> dict[str, Any]:
        """Stored JSON record."""
        return {
            "account": self.account,
            "saved_at": _iso(self.saved_at),
            "cookies": self.to_browser(),
        }


def parse_cookie_payload(raw: str, account_key: str = "unknown") -> CookieSet:
    """
    Parse a stored cookie record.

    Accepts the current record layout (``{"account", "saved_at", "cookies"}``)
    and the legacy bare cookie list.

    Raises:
        CorruptCookieStoreError: If the text is not valid JSON or not a
            cookie list
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptCookieStoreError(account_key, f"invalid JSON: {e.msg}") from e

    account: str | None = None
    saved_at: datetime | None = None
    if isinstance(data, dict):
        account = data.get("account")
        if data.get("saved_at"):
            try:
                saved_at = datetime.fromisoformat(data["saved_at"])
            except (TypeError, ValueError):
                saved_at = None
        data = data.get("cookies")

    if not isinstance(data, list):
        raise CorruptCookieStoreError(account_key, "cookies is not a list")

    try:
        cookies = [Cookie.from_dict(c) for c in data]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CorruptCookieStoreError(account_key, f"malformed cookie: {e}") from e

    return CookieSet(cookies=cookies, account=account, saved_at=saved_at)


@dataclass
class CookieDetail:
    """Per-cookie expiry analysis."""

    name: str
    expires: float | None
    expires_at: datetime
    domain: str
    path: str
    http_only: bool
    secure: bool
    session: bool
    days_until_expiry: int
    is_expired: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "expires": self.expires,
            "expires_at": self.expires_at.isoformat(),
            "domain": self.domain,
            "path": self.path,
            "http_only": self.http_only,
            "secure": self.secure,
            "session": self.session,
            "days_until_expiry": self.days_until_expiry,
            "is_expired": self.is_expired,
        }


@dataclass
class ValidationResult:
    """Outcome of validating one account's cookies. Never cached."""

    is_valid: bool
    cookie_count: int
    method: ValidationMethod = ValidationMethod.EXPIRY_ONLY
    next_expiry: datetime | None = None
    details: list[CookieDetail] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    validity_duration: str = "Unknown"
    account: str | None = None
    validated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "is_valid": self.is_valid,
            "cookie_count": self.cookie_count,
            "method": self.method.value,
            "next_expiry": _iso(self.next_expiry),
            "validity_duration": self.validity_duration,
            "validated_at": _iso(self.validated_at),
            "error": self.error,
            "error_code": self.error_code,
            "cookie_details": [d.to_dict() for d in self.details],
        }


@dataclass
class TokenClaim:
    """Bearer/refresh token expiry found in a cookie."""

    kind: str  # "access" | "refresh"
    name: str
    expires_at: datetime
    source: str  # "jwt" | "cookie"
    is_expired: bool
    remaining_time: str
    utc_time: str
    local_time: str
    jwt_expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "expires_at": self.expires_at.isoformat(),
            "expires_at_epoch": int(self.expires_at.timestamp()),
            "source": self.source,
            "jwt_expires_at": _iso(self.jwt_expires_at),
            "is_expired": self.is_expired,
            "remaining_time": self.remaining_time,
            "utc_time": self.utc_time,
            "local_time": self.local_time,
        }


def stored_account(raw: str | None) -> str | None:
    """E-mail recorded in a stored record, if readable."""
    if not raw:
        return None
    try:
        return parse_cookie_payload(raw).account
    except CorruptCookieStoreError:
        return None
