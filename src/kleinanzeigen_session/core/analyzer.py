"""Offline cookie expiry analysis.

Everything here is pure: results depend only on the cookies and ``now``.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any

from kleinanzeigen_session.exceptions import CorruptCookieStoreError
from kleinanzeigen_session.models.cookies import (
    Cookie,
    CookieDetail,
    CookieSet,
    ValidationMethod,
    ValidationResult,
    parse_cookie_payload,
)
from kleinanzeigen_session.models.outcomes import ReasonCode
from kleinanzeigen_session.utils.constants import (
    SECONDS_PER_DAY,
    SESSION_COOKIE_HORIZON_DAYS,
)


NO_COOKIES_ERROR = "No cookies found"
ALL_EXPIRED_ERROR = "All cookies expired"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _detail(cookie: Cookie, now: datetime) -> CookieDetail:
    if cookie.is_session:
        expires_at = now + timedelta(days=SESSION_COOKIE_HORIZON_DAYS)
        days = SESSION_COOKIE_HORIZON_DAYS
        is_expired = False
    else:
        expiry = float(cookie.expires or 0)
        now_ts = now.timestamp()
        expires_at = datetime.fromtimestamp(expiry, tz=timezone.utc)
        days = math.ceil((expiry - now_ts) / SECONDS_PER_DAY)
        is_expired = expiry <= now_ts

    return CookieDetail(
        name=cookie.name,
        expires=cookie.expires,
        expires_at=expires_at,
        domain=cookie.domain,
        path=cookie.path,
        http_only=cookie.http_only,
        secure=cookie.secure,
        session=cookie.session or cookie.is_session,
        days_until_expiry=days,
        is_expired=is_expired,
    )


def validity_duration(next_expiry: datetime | None, now: datetime | None = None) -> str:
    """
    Describe how long a session stays valid.

    Returns ``"N days"``, ``"N hours"``, ``"Less than 1 hour"`` or
    ``"Unknown"`` when there is no expiry.
    """
    if next_expiry is None:
        return "Unknown"
    remaining = (next_expiry - (now or _utcnow())).total_seconds()
    days = int(remaining // SECONDS_PER_DAY)
    if days > 0:
        return f"{days} days"
    hours = int(remaining // 3600)
    if hours > 0:
        return f"{hours} hours"
    return "Less than 1 hour"


def analyze(
    cookie_set: CookieSet | None,
    now: datetime | None = None,
    account: str | None = None,
) -> ValidationResult:
    """
    Classify a cookie set as valid or expired without touching the network.

    A cookie is expired when its positive expiry is at or before ``now``.
    Session cookies (no expiry) count as valid for a one-year horizon. The
    set is valid while at least one cookie is unexpired.
    """
    now = now or _utcnow()
    account = account or (cookie_set.account if cookie_set else None)

    if not cookie_set:
        return ValidationResult(
            is_valid=False,
            cookie_count=0,
            error=NO_COOKIES_ERROR,
            error_code=ReasonCode.NO_COOKIES.value,
            account=account,
            validated_at=now,
        )

    details = [_detail(c, now) for c in cookie_set.cookies]
    alive = [d for d in details if not d.is_expired]
    next_expiry = min((d.expires_at for d in alive), default=None)
    is_valid = bool(alive)

    return ValidationResult(
        is_valid=is_valid,
        cookie_count=len(details),
        method=ValidationMethod.EXPIRY_ONLY,
        next_expiry=next_expiry,
        details=details,
        error=None if is_valid else ALL_EXPIRED_ERROR,
        error_code=None if is_valid else ReasonCode.COOKIES_EXPIRED.value,
        validity_duration=validity_duration(next_expiry, now),
        account=account,
        validated_at=now,
    )


def analyze_payload(
    raw: str | None,
    now: datetime | None = None,
    account: str | None = None,
) -> ValidationResult:
    """Analyze stored record text, reporting unreadable records as corrupt."""
    if raw is None or not raw.strip():
        return analyze(None, now, account)
    try:
        cookie_set = parse_cookie_payload(raw, account or "unknown")
    except CorruptCookieStoreError as e:
        return ValidationResult(
            is_valid=False,
            cookie_count=0,
            error=e.reason,
            error_code=ReasonCode.CORRUPT_STORE.value,
            account=account,
            validated_at=now or _utcnow(),
        )
    return analyze(cookie_set, now, account)


def expiring_soon(
    results: list[ValidationResult],
    days_threshold: int = 7,
) -> list[dict[str, Any]]:
    """Unexpired cookies that expire within ``days_threshold`` days."""
    entries = [
        {
            "account": r.account,
            "cookie_name": d.name,
            "expires_at": d.expires_at.isoformat(),
            "days_until_expiry": d.days_until_expiry,
        }
        for r in results
        for d in r.details
        if not d.is_expired and d.days_until_expiry <= days_threshold
    ]
    entries.sort(key=lambda e: e["days_until_expiry"])
    return entries


def summarize(
    results: list[ValidationResult],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Aggregate statistics over many accounts."""
    valid = [r for r in results if r.is_valid]
    next_expiry = min(
        (r.next_expiry for r in valid if r.next_expiry is not None),
        default=None,
    )
    return {
        "total_files": len(results),
        "valid_files": len(valid),
        "expired_files": len(results) - len(valid),
        "total_cookie_count": sum(r.cookie_count for r in results),
        "next_expiry": next_expiry.isoformat() if next_expiry else None,
        "validity_duration": validity_duration(next_expiry, now),
    }
