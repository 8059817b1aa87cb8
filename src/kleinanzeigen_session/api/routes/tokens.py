"""Token endpoints - access/refresh token expiry."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from kleinanzeigen_session.api.dependencies import RequireApiKey, SessionServiceDep
from kleinanzeigen_session.api.schemas import TokenSummaryResponse
from kleinanzeigen_session.utils.logging import get_logger, mask_email


logger = get_logger(__name__)

router = APIRouter(prefix="/tokens", tags=["Tokens"])


@router.get(
    "/analyze/{email}",
    response_model=TokenSummaryResponse,
    summary="Analyze token expiry",
    description="Reads JWT and cookie expiries of the stored bearer tokens.",
)
async def analyze_tokens(
    email: str,
    service: SessionServiceDep,
    _api_key: RequireApiKey,
) -> TokenSummaryResponse:
    try:
        summary = await service.analyze_tokens(email)
    except Exception as e:
        logger.error("Token analysis failed", account=mask_email(email), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to analyze tokens: {e!s}",
        ) from e

    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cookie file found for {email}",
        )
    return TokenSummaryResponse(**summary)
