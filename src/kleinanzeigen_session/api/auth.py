"""API key authentication."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from kleinanzeigen_session.utils.config import get_settings
from kleinanzeigen_session.utils.logging import get_logger


logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def validate_key(key: str, valid_keys: list[str]) -> bool:
    """Constant-time membership check."""
    if not key:
        return False
    return any(hmac.compare_digest(key, valid) for valid in valid_keys)


async def get_api_key(
    api_key_header_value: str | None = Security(api_key_header),
) -> str:
    """
    Validate the ``X-API-Key`` header when authentication is enabled.

    Raises:
        HTTPException: If the key is missing or invalid
    """
    settings = get_settings()
    if not settings.auth.auth_enabled:
        return "auth_disabled"

    if not api_key_header_value:
        logger.warning("API request without API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required. Provide via X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not validate_key(api_key_header_value, settings.auth.get_keys_list()):
        logger.warning(
            "Invalid API key attempt",
            key_prefix=api_key_header_value[:8] + "...",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key_header_value
