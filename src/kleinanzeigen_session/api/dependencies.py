"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from kleinanzeigen_session.api.auth import get_api_key
from kleinanzeigen_session.services.session_service import SessionService
from kleinanzeigen_session.utils.config import get_settings
from kleinanzeigen_session.utils.logging import get_logger


logger = get_logger(__name__)

# Global service instance (singleton pattern)
_session_service: SessionService | None = None


async def get_session_service() -> SessionService:
    """Get or create the session service instance."""
    global _session_service  # noqa: PLW0603
    if _session_service is None:
        _session_service = SessionService.from_settings(get_settings())
        logger.info("Session service initialized")
    return _session_service


def set_session_service(service: SessionService | None) -> None:
    """Replace the service instance (tests and embedding)."""
    global _session_service  # noqa: PLW0603
    _session_service = service


async def cleanup_session_service() -> None:
    """Stop background work on shutdown."""
    global _session_service  # noqa: PLW0603
    if _session_service:
        await _session_service.close()
        _session_service = None


# Type aliases for dependency injection
SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]

# API Key dependency
RequireApiKey = Annotated[str, Depends(get_api_key)]
