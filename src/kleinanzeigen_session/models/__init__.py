"""Data models for cookies, validation results and login outcomes."""

from kleinanzeigen_session.models.cookies import (
    Cookie,
    CookieDetail,
    CookieSet,
    TokenClaim,
    ValidationMethod,
    ValidationResult,
    parse_cookie_payload,
    stored_account,
)
from kleinanzeigen_session.models.outcomes import (
    LoginAttemptOutcome,
    LoginPath,
    ProbeResult,
    ReasonCode,
    RefreshResult,
    SchedulerStatus,
    SweepReport,
    VerificationResult,
)


__all__ = [
    "Cookie",
    "CookieDetail",
    "CookieSet",
    "LoginAttemptOutcome",
    "LoginPath",
    "ProbeResult",
    "ReasonCode",
    "RefreshResult",
    "SchedulerStatus",
    "SweepReport",
    "TokenClaim",
    "ValidationMethod",
    "ValidationResult",
    "VerificationResult",
    "parse_cookie_payload",
    "stored_account",
]
