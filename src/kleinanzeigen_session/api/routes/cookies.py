"""Cookie endpoints - inspection, cleanup and refresh."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from kleinanzeigen_session.api.dependencies import RequireApiKey, SessionServiceDep
from kleinanzeigen_session.api.schemas import (
    AutoRefreshStartRequest,
    CheckLoginResponse,
    CleanupResponse,
    CookieDetailsResponse,
    CookieStatsResponse,
    CookieStatusResponse,
    ExpiringSoonResponse,
    RefreshAllResponse,
    RefreshResponse,
    RefreshStatusResponse,
    SchedulerStatusResponse,
    ValidationSchema,
)
from kleinanzeigen_session.utils.logging import get_logger, mask_email


logger = get_logger(__name__)

router = APIRouter(prefix="/cookies", tags=["Cookies"])


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Failed to {action}", error=str(e))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {e!s}",
    )


# =============================================================================
# Inspection
# =============================================================================


@router.get(
    "/status",
    response_model=CookieStatusResponse,
    summary="Validate all stored cookies",
)
async def cookie_status(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> CookieStatusResponse:
    try:
        results = await service.all_statuses()
    except Exception as e:
        raise _server_error("validate cookies", e) from e
    return CookieStatusResponse(
        results=[ValidationSchema.model_validate(r.to_dict()) for r in results],
    )


@router.get(
    "/stats",
    response_model=CookieStatsResponse,
    summary="Aggregate cookie statistics",
)
async def cookie_stats(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> CookieStatsResponse:
    try:
        stats = await service.stats()
    except Exception as e:
        raise _server_error("get cookie stats", e) from e
    return CookieStatsResponse(stats=stats)


@router.get(
    "/expiring-soon",
    response_model=ExpiringSoonResponse,
    summary="Cookies expiring within N days",
)
async def expiring_soon(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
    days: int = Query(default=7, ge=0, le=365),
) -> ExpiringSoonResponse:
    try:
        cookies = await service.expiring_soon(days)
    except Exception as e:
        raise _server_error("get expiring cookies", e) from e
    return ExpiringSoonResponse(days_threshold=days, count=len(cookies), cookies=cookies)


@router.get(
    "/details/{email}",
    response_model=CookieDetailsResponse,
    summary="Per-cookie details for one account",
)
async def cookie_details(
    email: str,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> CookieDetailsResponse:
    try:
        result = await service.cookie_details(email)
    except Exception as e:
        raise _server_error("get cookie details", e) from e
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cookie file found for {email}",
        )
    return CookieDetailsResponse(
        email=email,
        validation=ValidationSchema.model_validate(result.to_dict()),
    )


@router.post(
    "/test/{email}",
    response_model=CheckLoginResponse,
    summary="Live-test one account's cookies",
)
async def test_cookies(
    email: str,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> CheckLoginResponse:
    try:
        result = await service.check_login(email)
    except Exception as e:
        raise _server_error("test cookies", e) from e
    return CheckLoginResponse(
        email=email,
        is_logged_in=result.is_valid,
        message="Cookies work" if result.is_valid else result.error,
        validation=ValidationSchema.model_validate(result.to_dict()),
    )


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Delete expired cookie files",
)
async def cleanup(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> CleanupResponse:
    try:
        counts = await service.cleanup()
    except Exception as e:
        raise _server_error("clean up cookies", e) from e
    return CleanupResponse(
        message=f"Deleted {counts['deleted']} expired cookie file(s)",
        **counts,
    )


# =============================================================================
# Refresh
# =============================================================================


@router.post(
    "/refresh/{email}",
    response_model=RefreshResponse,
    summary="Refresh one account now",
)
async def refresh_account(
    email: str,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> RefreshResponse:
    try:
        result = await service.refresh(email)
    except Exception as e:
        logger.error("Refresh failed", account=mask_email(email), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to refresh cookies: {e!s}",
        ) from e
    return RefreshResponse(
        status="success" if result.success else "error",
        message=result.message,
        result=result.to_dict(),
    )


@router.post(
    "/refresh-all",
    response_model=RefreshAllResponse,
    summary="Refresh every stored account now",
)
async def refresh_all(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> RefreshAllResponse:
    try:
        report = await service.refresh_all()
    except Exception as e:
        raise _server_error("refresh cookies", e) from e
    return RefreshAllResponse(
        message=f"Refreshed {report.refreshed} of {len(report.selected)} account(s)",
        report=report.to_dict(),
    )


@router.get(
    "/refresh-status",
    response_model=RefreshStatusResponse,
    summary="Accounts that need a refresh",
)
async def refresh_status(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
    threshold: float = Query(default=6.0, gt=0, description="Hours"),
) -> RefreshStatusResponse:
    try:
        data = await service.refresh_status(threshold)
    except Exception as e:
        raise _server_error("check refresh status", e) from e
    return RefreshStatusResponse(**data)


@router.post(
    "/auto-refresh/start",
    response_model=SchedulerStatusResponse,
    summary="Start automatic refresh",
)
async def start_auto_refresh(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
    request: AutoRefreshStartRequest | None = None,
) -> SchedulerStatusResponse:
    interval = request.interval if request else None
    scheduler = service.start_auto_refresh(interval)
    return SchedulerStatusResponse(
        message=f"Auto-refresh started (every {scheduler.interval_hours} hours)",
        scheduler=scheduler.to_dict(),
    )


@router.post(
    "/auto-refresh/stop",
    response_model=SchedulerStatusResponse,
    summary="Stop automatic refresh",
)
async def stop_auto_refresh(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> SchedulerStatusResponse:
    scheduler = service.stop_auto_refresh()
    return SchedulerStatusResponse(
        message="Auto-refresh stopped",
        scheduler=scheduler.to_dict(),
    )


@router.get(
    "/auto-refresh/status",
    response_model=SchedulerStatusResponse,
    summary="Automatic refresh status",
)
async def auto_refresh_status(
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(scheduler=service.auto_refresh_status().to_dict())
