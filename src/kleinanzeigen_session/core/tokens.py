"""Bearer and refresh token expiry extraction from stored cookies."""

from __future__ import annotations

import base64
import binascii
import json
import math
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from kleinanzeigen_session.models.cookies import Cookie, CookieSet, TokenClaim
from kleinanzeigen_session.utils.constants import (
    ACCESS_TOKEN_MARKER,
    MAX_EPOCH_SECONDS,
    REFRESH_TOKEN_MARKER,
)


ACCESS = "access"
REFRESH = "refresh"

_KIND_ORDER = {ACCESS: 0, REFRESH: 1}


def token_kind(name: str) -> str | None:
    """Classify a cookie name as access/refresh token, or None."""
    lname = name.lower()
    if ACCESS_TOKEN_MARKER in lname:
        return ACCESS
    if REFRESH_TOKEN_MARKER in lname:
        return REFRESH
    return None


def jwt_expiry(value: str) -> float | None:
    """Read the numeric ``exp`` claim of a JWT, or None if not a JWT."""
    parts = value.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    if not math.isfinite(exp) or abs(exp) > MAX_EPOCH_SECONDS:
        return None
    return float(exp)


def format_remaining(target: datetime, now: datetime | None = None) -> str:
    """Render ``expires in 1d 2h 3m 4s`` or ``expired 1d 2h 3m 4s ago``."""
    delta = (target - (now or datetime.now(timezone.utc))).total_seconds()
    total = int(abs(delta))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    text = f"{days}d {hours}h {minutes}m {seconds}s"
    return f"expired {text} ago" if delta < 0 else f"expires in {text}"


def format_local(value: datetime, tz_name: str = "Europe/Berlin") -> str:
    """Format a timestamp in the display timezone (``dd.mm.yyyy, HH:MM:SS``)."""
    return value.astimezone(ZoneInfo(tz_name)).strftime("%d.%m.%Y, %H:%M:%S")


def format_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _claim(
    cookie: Cookie,
    kind: str,
    now: datetime,
    tz_name: str,
) -> TokenClaim | None:
    native = (
        datetime.fromtimestamp(cookie.expires, tz=timezone.utc)
        if not cookie.is_session and cookie.expires is not None
        else None
    )
    exp = jwt_expiry(cookie.value)
    from_jwt = datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None
    if native is not None:
        expires_at = native
        source = "cookie"
    elif from_jwt is not None:
        expires_at = from_jwt
        source = "jwt"
    else:
        return None

    return TokenClaim(
        kind=kind,
        name=cookie.name,
        expires_at=expires_at,
        source=source,
        jwt_expires_at=from_jwt,
        is_expired=expires_at <= now,
        remaining_time=format_remaining(expires_at, now),
        utc_time=format_utc(expires_at),
        local_time=format_local(expires_at, tz_name),
    )


def extract_claims(
    cookie_set: CookieSet | None,
    now: datetime | None = None,
    tz_name: str = "Europe/Berlin",
) -> list[TokenClaim]:
    """
    Find token expiries among the cookies.

    The cookie's own positive expiry wins; a decodable JWT ``exp`` is used
    only for session cookies and is always kept as ``jwt_expires_at``.
    Claims are ordered access before refresh, then by expiry.
    """
    if not cookie_set:
        return []
    now = now or datetime.now(timezone.utc)

    claims: list[TokenClaim] = []
    for cookie in cookie_set.cookies:
        kind = token_kind(cookie.name)
        if kind is None:
            continue
        claim = _claim(cookie, kind, now, tz_name)
        if claim is not None:
            claims.append(claim)

    claims.sort(key=lambda c: (_KIND_ORDER[c.kind], c.expires_at))
    return claims


def summarize_tokens(
    account: str,
    claims: list[TokenClaim],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Token summary with the first access and refresh claims highlighted."""
    access = next((c for c in claims if c.kind == ACCESS), None)
    refresh = next((c for c in claims if c.kind == REFRESH), None)
    return {
        "email": account,
        "tokens": [c.to_dict() for c in claims],
        "access_token_expiry": access.expires_at.isoformat() if access else None,
        "refresh_token_expiry": refresh.expires_at.isoformat() if refresh else None,
        "login_valid_until": access.local_time if access else None,
        "refresh_valid_until": refresh.local_time if refresh else None,
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
    }
