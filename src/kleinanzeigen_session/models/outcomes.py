"""Result types returned by the login, probe and refresh operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ReasonCode(str, Enum):
    """Why an operation did not produce an authenticated session."""

    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    NO_COOKIES = "NO_COOKIES"
    CORRUPT_STORE = "CORRUPT_STORE"
    COOKIES_EXPIRED = "COOKIES_EXPIRED"
    SESSION_PROBE_FAILED = "SESSION_PROBE_FAILED"
    AUTOMATION_TIMEOUT = "AUTOMATION_TIMEOUT"
    LOGIN_FAILED = "LOGIN_FAILED"
    VERIFICATION_REQUIRED = "VERIFICATION_REQUIRED"


class LoginPath(str, Enum):
    """Which branch of the login state machine produced an outcome."""

    SKIPPED = "skipped"
    FULL_LOGIN = "full_login"
    REUSED = "reused"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class ProbeResult:
    """Outcome of a live session probe."""

    is_valid: bool
    error: str | None = None
    method: str = "live-probe"


@dataclass
class VerificationResult:
    """Outcome reported by an e-mail verifier."""

    success: bool
    verification_link: str | None = None
    reason: str | None = None
    message: str | None = None


@dataclass
class LoginAttemptOutcome:
    """
    Result of one ``login`` call.

    ``succeeded`` is true when the session was verified or credentials were
    submitted; ``logged_in`` only reports the verified state.
    """

    succeeded: bool
    logged_in: bool
    did_submit_credentials: bool
    path: LoginPath
    cookie_set_ref: str | None = None
    failure_reason: ReasonCode | None = None
    requires_email_verification: bool = False
    verification_reason: str | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "logged_in": self.logged_in,
            "did_submit_credentials": self.did_submit_credentials,
            "path": self.path.value,
            "cookie_set_ref": self.cookie_set_ref,
            "failure_reason": (
                self.failure_reason.value if self.failure_reason else None
            ),
            "requires_email_verification": self.requires_email_verification,
            "verification_reason": self.verification_reason,
            "message": self.message,
        }


@dataclass
class RefreshResult:
    """Result of refreshing one account."""

    email: str
    success: bool
    message: str
    refreshed_at: datetime
    old_expiry: datetime | None = None
    new_expiry: datetime | None = None
    outcome: LoginAttemptOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "success": self.success,
            "message": self.message,
            "refreshed_at": self.refreshed_at.isoformat(),
            "old_expiry": _iso(self.old_expiry),
            "new_expiry": _iso(self.new_expiry),
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }


@dataclass
class SweepReport:
    """Summary of one scheduler sweep."""

    started_at: datetime
    finished_at: datetime | None = None
    checked: int = 0
    selected: list[str] = field(default_factory=list)
    results: list[RefreshResult] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    aborted: bool = False

    @property
    def refreshed(self) -> int:
        return sum(1 for r in self.results if r.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": _iso(self.finished_at),
            "checked": self.checked,
            "selected": list(self.selected),
            "refreshed": self.refreshed,
            "results": [r.to_dict() for r in self.results],
            "errors": dict(self.errors),
            "aborted": self.aborted,
        }


@dataclass
class SchedulerStatus:
    """Snapshot of the background refresh timer."""

    is_running: bool
    interval_hours: float | None = None
    last_sweep_at: datetime | None = None
    next_sweep_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "interval_hours": self.interval_hours,
            "last_sweep_at": _iso(self.last_sweep_at),
            "next_sweep_at": _iso(self.next_sweep_at),
        }
