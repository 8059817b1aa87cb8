"""Auth endpoints - login and session checks per account."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from kleinanzeigen_session.api.dependencies import RequireApiKey, SessionServiceDep
from kleinanzeigen_session.api.schemas import (
    AccountStatusResponse,
    CheckLoginRequest,
    CheckLoginResponse,
    LoginRequest,
    LoginResponse,
    UsersResponse,
    ValidationSchema,
)
from kleinanzeigen_session.exceptions import CookieStoreError
from kleinanzeigen_session.models.outcomes import ReasonCode
from kleinanzeigen_session.utils.logging import get_logger, mask_email


logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log an account in",
    description=(
        "Reuses stored cookies when the session is still live, otherwise "
        "submits the credentials in the browser and stores the new cookies."
    ),
)
async def login(
    request: LoginRequest,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> LoginResponse:
    try:
        outcome = await service.login(request.email, request.password)
    except CookieStoreError as e:
        logger.error("Login failed", account=mask_email(request.email), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Cookie storage failed: {e!s}",
        ) from e

    if outcome.failure_reason is ReasonCode.MISSING_CREDENTIALS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password is required (no valid cookies found)",
        )
    if not outcome.succeeded:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=outcome.message or "Login failed",
        )

    data = outcome.to_dict()
    message = data.pop("message")
    return LoginResponse(email=request.email, message=message, **data)


@router.get(
    "/status/{email}",
    response_model=AccountStatusResponse,
    summary="Stored session status",
    description="Offline expiry analysis of the account's stored cookies.",
)
async def account_status(
    email: str,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> AccountStatusResponse:
    try:
        result = await service.account_status(email)
    except Exception as e:
        logger.error("Status check failed", account=mask_email(email), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check status: {e!s}",
        ) from e

    return AccountStatusResponse(
        email=email,
        has_cookies=result.cookie_count > 0,
        message="Cookies valid" if result.is_valid else result.error,
        validation=ValidationSchema.model_validate(result.to_dict()),
    )


@router.post(
    "/check-login",
    response_model=CheckLoginResponse,
    summary="Live login check",
    description="Opens the home page with the stored cookies and checks the login.",
)
async def check_login(
    request: CheckLoginRequest,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> CheckLoginResponse:
    try:
        result = await service.check_login(request.email)
    except Exception as e:
        logger.error(
            "Login check failed", account=mask_email(request.email), error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check login: {e!s}",
        ) from e

    return CheckLoginResponse(
        email=request.email,
        is_logged_in=result.is_valid,
        message="Logged in" if result.is_valid else result.error,
        validation=ValidationSchema.model_validate(result.to_dict()),
    )


@router.get(
    "/users",
    response_model=UsersResponse,
    summary="List stored accounts",
)
async def list_users(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> UsersResponse:
    try:
        users = await service.list_users()
    except Exception as e:
        logger.error("Failed to list users", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list users: {e!s}",
        ) from e
    return UsersResponse(count=len(users), users=users)
