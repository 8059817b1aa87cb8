"""Core module - cookie analysis, live validation, login and refresh."""

from kleinanzeigen_session.core.analyzer import analyze, analyze_payload
from kleinanzeigen_session.core.browser import BrowserClient, NodriverBrowserClient
from kleinanzeigen_session.core.orchestrator import LoginOrchestrator
from kleinanzeigen_session.core.scheduler import RefreshScheduler
from kleinanzeigen_session.core.tokens import extract_claims
from kleinanzeigen_session.core.validator import SessionValidator


__all__ = [
    "BrowserClient",
    "LoginOrchestrator",
    "NodriverBrowserClient",
    "RefreshScheduler",
    "SessionValidator",
    "analyze",
    "analyze_payload",
    "extract_claims",
]
