"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Base Schemas
# =============================================================================


class BaseResponse(BaseModel):
    """Envelope shared by every response."""

    status: str = "success"
    message: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)


class ErrorResponse(BaseModel):
    """Error response schema."""

    status: str = "error"
    message: str
    timestamp: str = Field(default_factory=utc_timestamp)


# =============================================================================
# Cookie Schemas (aligned with the analysis dataclasses)
# =============================================================================


class CookieDetailSchema(BaseModel):
    """Per-cookie expiry analysis."""

    name: str
    expires: float | None = None
    expires_at: str
    domain: str
    path: str
    http_only: bool
    secure: bool
    session: bool
    days_until_expiry: int
    is_expired: bool


class ValidationSchema(BaseModel):
    """Validation result for one account."""

    account: str | None = None
    is_valid: bool
    cookie_count: int
    method: str
    next_expiry: str | None = None
    validity_duration: str = "Unknown"
    validated_at: str | None = None
    error: str | None = None
    error_code: str | None = None
    cookie_details: list[CookieDetailSchema] = Field(default_factory=list)


class UserSummarySchema(BaseModel):
    email: str | None
    is_valid: bool
    cookie_count: int
    next_expiry: str | None = None
    validity_duration: str = "Unknown"


class CookieStatsSchema(BaseModel):
    total_files: int
    valid_files: int
    expired_files: int
    total_cookie_count: int
    next_expiry: str | None = None
    validity_duration: str = "Unknown"


class ExpiringCookieSchema(BaseModel):
    account: str | None
    cookie_name: str
    expires_at: str
    days_until_expiry: int


# =============================================================================
# Login Schemas
# =============================================================================


class LoginRequest(BaseModel):
    """Request body for a login."""

    email: str = Field(..., min_length=3)
    password: str | None = Field(
        default=None,
        description="Optional when valid cookies are stored or configured",
    )


class CheckLoginRequest(BaseModel):
    email: str = Field(..., min_length=3)


class LoginResponse(BaseResponse):
    """Outcome of a login attempt."""

    email: str
    succeeded: bool
    logged_in: bool
    did_submit_credentials: bool
    path: str
    cookie_set_ref: str | None = None
    failure_reason: str | None = None
    requires_email_verification: bool = False
    verification_reason: str | None = None


class AccountStatusResponse(BaseResponse):
    email: str
    has_cookies: bool
    validation: ValidationSchema


class CheckLoginResponse(BaseResponse):
    email: str
    is_logged_in: bool
    validation: ValidationSchema


class UsersResponse(BaseResponse):
    count: int
    users: list[UserSummarySchema]


# =============================================================================
# Cookie Endpoint Schemas
# =============================================================================


class CookieStatusResponse(BaseResponse):
    results: list[ValidationSchema]


class CookieStatsResponse(BaseResponse):
    stats: CookieStatsSchema


class ExpiringSoonResponse(BaseResponse):
    days_threshold: int
    count: int
    cookies: list[ExpiringCookieSchema]


class CookieDetailsResponse(BaseResponse):
    email: str
    validation: ValidationSchema


class CleanupResponse(BaseResponse):
    deleted: int
    kept: int


# =============================================================================
# Refresh Schemas
# =============================================================================


class RefreshResultSchema(BaseModel):
    email: str
    success: bool
    message: str
    refreshed_at: str
    old_expiry: str | None = None
    new_expiry: str | None = None
    outcome: dict[str, Any] | None = None


class SweepReportSchema(BaseModel):
    started_at: str
    finished_at: str | None = None
    checked: int
    selected: list[str]
    refreshed: int
    results: list[RefreshResultSchema]
    errors: dict[str, str]
    aborted: bool


class RefreshResponse(BaseResponse):
    result: RefreshResultSchema


class RefreshAllResponse(BaseResponse):
    report: SweepReportSchema


class RefreshStatusResponse(BaseResponse):
    needs_refresh: bool
    users: list[str]
    threshold_hours: float


class AutoRefreshStartRequest(BaseModel):
    """Request body for starting the refresh timer."""

    interval: float | None = Field(
        default=None,
        gt=0,
        description="Interval in hours (default 0.25)",
    )


class SchedulerStatusSchema(BaseModel):
    is_running: bool
    interval_hours: float | None = None
    last_sweep_at: str | None = None
    next_sweep_at: str | None = None


class SchedulerStatusResponse(BaseResponse):
    scheduler: SchedulerStatusSchema


# =============================================================================
# Token Schemas
# =============================================================================


class TokenClaimSchema(BaseModel):
    kind: str
    name: str
    expires_at: str
    expires_at_epoch: int
    source: str
    jwt_expires_at: str | None = None
    is_expired: bool
    remaining_time: str
    utc_time: str
    local_time: str


class TokenSummaryResponse(BaseResponse):
    email: str
    tokens: list[TokenClaimSchema]
    access_token_expiry: str | None = None
    refresh_token_expiry: str | None = None
    login_valid_until: str | None = None
    refresh_valid_until: str | None = None


# =============================================================================
# Health Schemas
# =============================================================================


class HealthResponse(BaseResponse):
    """Service health."""

    version: str
    env: str
    accounts: int
    scheduler: SchedulerStatusSchema


class LivenessResponse(BaseModel):
    status: str = "alive"
    timestamp: str = Field(default_factory=utc_timestamp)
