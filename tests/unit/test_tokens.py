"""Unit tests for token expiry extraction."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from kleinanzeigen_session.core.tokens import (
    extract_claims,
    format_local,
    format_remaining,
    format_utc,
    jwt_expiry,
    summarize_tokens,
    token_kind,
)
from kleinanzeigen_session.models.cookies import Cookie, CookieSet


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def b64(data: dict) -> str:
    raw = json.dumps(data).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def jwt(payload: dict) -> str:
    return f"{b64({'alg': 'HS256', 'typ': 'JWT'})}.{b64(payload)}.signature"


def cookie(name: str, value: str = "opaque", expires: datetime | None = None) -> Cookie:
    return Cookie(
        name=name,
        value=value,
        expires=expires.timestamp() if expires else -1,
    )


class TestTokenKind:
    """Tests for cookie name classification."""

    @pytest.mark.parametrize(
        ("name", "kind"),
        [
            ("access_token", "access"),
            ("KA_ACCESS_TOKEN", "access"),
            ("refresh_token", "refresh"),
            ("my_Refresh_Token_v2", "refresh"),
            ("session_id", None),
        ],
    )
    def test_classification(self, name: str, kind: str | None) -> None:
        """Test case-insensitive substring matching."""
        assert token_kind(name) == kind


class TestJwtExpiry:
    """Tests for JWT exp decoding."""

    def test_numeric_exp(self) -> None:
        """Test a numeric exp claim is returned."""
        assert jwt_expiry(jwt({"exp": 1717243200})) == 1717243200.0

    def test_not_three_segments(self) -> None:
        """Test values with a different segment count are ignored."""
        assert jwt_expiry("a.b") is None
        assert jwt_expiry("a.b.c.d") is None

    def test_undecodable_payload(self) -> None:
        """Test garbage in the payload segment is ignored."""
        assert jwt_expiry("header.%%%%.sig") is None

    @pytest.mark.parametrize("payload", [{"exp": "soon"}, {"exp": True}, {"sub": "x"}])
    def test_missing_or_non_numeric_exp(self, payload: dict) -> None:
        """Test exp must be a number."""
        assert jwt_expiry(jwt(payload)) is None

    @pytest.mark.parametrize("exp", [1e20, -1e20])
    def test_out_of_range_exp(self, exp: float) -> None:
        """Test an exp no timestamp can represent is ignored."""
        assert jwt_expiry(jwt({"exp": exp})) is None

    def test_payload_not_an_object(self) -> None:
        """Test a JSON array payload is ignored."""
        value = f"h.{base64.urlsafe_b64encode(b'[1, 2]').decode()}.s"
        assert jwt_expiry(value) is None


class TestFormatting:
    """Tests for remaining-time and timestamp rendering."""

    def test_future(self) -> None:
        """Test a future target renders as expires in."""
        target = NOW + timedelta(days=1, hours=2, minutes=3, seconds=4)
        assert format_remaining(target, NOW) == "expires in 1d 2h 3m 4s"

    def test_past(self) -> None:
        """Test a past target renders as expired ago."""
        target = NOW - timedelta(hours=5, seconds=1)
        assert format_remaining(target, NOW) == "expired 0d 5h 0m 1s ago"

    def test_local_time_uses_display_timezone(self) -> None:
        """Test Berlin summer time is UTC+2."""
        assert format_local(NOW, "Europe/Berlin") == "01.06.2024, 14:00:00"

    def test_utc(self) -> None:
        """Test UTC rendering."""
        assert format_utc(NOW) == "2024-06-01 12:00:00 UTC"


class TestExtractClaims:
    """Tests for extract_claims()."""

    def test_cookie_expiry_wins_over_jwt_exp(self) -> None:
        """Test the native expiry is used and the JWT exp kept alongside."""
        exp = NOW + timedelta(hours=1)
        native = NOW + timedelta(days=30)
        cookies = CookieSet(
            cookies=[cookie("access_token", jwt({"exp": int(exp.timestamp())}), native)]
        )

        [claim] = extract_claims(cookies, now=NOW)

        assert claim.kind == "access"
        assert claim.source == "cookie"
        assert claim.expires_at == native
        assert claim.jwt_expires_at == exp
        assert claim.is_expired is False
        assert claim.remaining_time == "expires in 30d 0h 0m 0s"

    def test_session_cookie_falls_back_to_jwt(self) -> None:
        """Test a session cookie still yields a claim from its JWT."""
        exp = NOW + timedelta(minutes=10)
        cookies = CookieSet(
            cookies=[cookie("refresh_token", jwt({"exp": int(exp.timestamp())}))]
        )

        [claim] = extract_claims(cookies, now=NOW)

        assert claim.source == "jwt"
        assert claim.expires_at == exp
        assert claim.jwt_expires_at == exp

    def test_opaque_token_uses_cookie_expiry(self) -> None:
        """Test non-JWT values fall back to the cookie's own expiry."""
        native = NOW + timedelta(days=2)
        [claim] = extract_claims(
            CookieSet(cookies=[cookie("access_token", "opaque", native)]), now=NOW
        )
        assert claim.source == "cookie"
        assert claim.expires_at == native
        assert claim.jwt_expires_at is None

    def test_opaque_session_token_is_skipped(self) -> None:
        """Test tokens with no expiry source at all produce no claim."""
        assert extract_claims(CookieSet(cookies=[cookie("access_token")]), now=NOW) == []

    def test_other_cookies_discarded(self) -> None:
        """Test cookies that are neither access nor refresh tokens are ignored."""
        native = NOW + timedelta(days=2)
        cookies = CookieSet(cookies=[cookie("JSESSIONID", "x", native)])
        assert extract_claims(cookies, now=NOW) == []

    def test_sorted_access_first_then_by_expiry(self) -> None:
        """Test access claims precede refresh claims, each ascending."""
        cookies = CookieSet(
            cookies=[
                cookie("refresh_token", "r", NOW + timedelta(days=1)),
                cookie("access_token_b", "b", NOW + timedelta(hours=5)),
                cookie("access_token_a", "a", NOW + timedelta(hours=1)),
            ]
        )

        claims = extract_claims(cookies, now=NOW)

        assert [c.name for c in claims] == [
            "access_token_a",
            "access_token_b",
            "refresh_token",
        ]

    def test_refresh_between_two_access_claims(self) -> None:
        """Test a refresh claim expiring between two access claims still sorts last."""
        cookies = CookieSet(
            cookies=[
                cookie("refresh_token", "r", NOW + timedelta(minutes=10)),
                cookie("access_token_1", "a", NOW + timedelta(minutes=5)),
                cookie("access_token_2", "b", NOW + timedelta(minutes=20)),
            ]
        )

        claims = extract_claims(cookies, now=NOW)

        assert [(c.kind, c.name) for c in claims] == [
            ("access", "access_token_1"),
            ("access", "access_token_2"),
            ("refresh", "refresh_token"),
        ]

    def test_expired_claim(self) -> None:
        """Test a past expiry is flagged."""
        [claim] = extract_claims(
            CookieSet(cookies=[cookie("access_token", "x", NOW - timedelta(hours=2))]),
            now=NOW,
        )
        assert claim.is_expired is True
        assert claim.remaining_time.startswith("expired")

    def test_empty(self) -> None:
        """Test no cookie set yields no claims."""
        assert extract_claims(None, now=NOW) == []


class TestSummarizeTokens:
    """Tests for the token summary."""

    def test_highlights_first_access_and_refresh(self) -> None:
        """Test the first claim of each kind is surfaced."""
        access = NOW + timedelta(hours=1)
        refresh = NOW + timedelta(days=14)
        claims = extract_claims(
            CookieSet(
                cookies=[
                    cookie("access_token", "a", access),
                    cookie("refresh_token", "r", refresh),
                ]
            ),
            now=NOW,
        )

        summary = summarize_tokens("a@example.de", claims, NOW)

        assert summary["email"] == "a@example.de"
        assert len(summary["tokens"]) == 2
        assert summary["access_token_expiry"] == access.isoformat()
        assert summary["refresh_token_expiry"] == refresh.isoformat()
        assert summary["login_valid_until"] == "01.06.2024, 15:00:00"
        assert summary["timestamp"] == NOW.isoformat()

    def test_no_claims(self) -> None:
        """Test missing kinds are None."""
        summary = summarize_tokens("a@example.de", [], NOW)
        assert summary["access_token_expiry"] is None
        assert summary["refresh_valid_until"] is None
