"""
Kleinanzeigen Session - cookie and login lifecycle for marketplace accounts.

Usage:
    from kleinanzeigen_session import SessionService
    from kleinanzeigen_session.utils.config import get_settings

    service = SessionService.from_settings(get_settings())
    outcome = await service.login("user@example.com")
    stats = await service.stats()
"""

__version__ = "0.1.0"

from kleinanzeigen_session.core.orchestrator import LoginOrchestrator
from kleinanzeigen_session.core.scheduler import RefreshScheduler
from kleinanzeigen_session.services.session_service import SessionService


__all__ = [
    "LoginOrchestrator",
    "RefreshScheduler",
    "SessionService",
    "__version__",
]
