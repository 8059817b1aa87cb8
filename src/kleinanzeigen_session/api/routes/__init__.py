"""API routes package."""

from kleinanzeigen_session.api.routes.auth import router as auth_router
from kleinanzeigen_session.api.routes.cookies import router as cookies_router
from kleinanzeigen_session.api.routes.health import router as health_router
from kleinanzeigen_session.api.routes.tokens import router as tokens_router


__all__ = [
    "auth_router",
    "cookies_router",
    "health_router",
    "tokens_router",
]
