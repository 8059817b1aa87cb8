"""Custom exceptions for the Kleinanzeigen session manager.

Expected conditions (missing credentials, expired cookies, failed probes) are
reported through outcome objects carrying a ``ReasonCode``. The exceptions
below are for faults that cross a component boundary.
"""

from __future__ import annotations


class KleinanzeigenSessionError(Exception):
    """Base exception for all session manager errors."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class CookieStoreError(KleinanzeigenSessionError):
    """Raised when the cookie persistence layer fails (I/O)."""

    pass


class CorruptCookieStoreError(CookieStoreError):
    """Raised when a stored cookie record cannot be parsed."""

    def __init__(self, account_key: str, reason: str) -> None:
        super().__init__(f"Corrupt cookie record for {account_key}: {reason}")
        self.account_key = account_key
        self.reason = reason


# =============================================================================
# Browser Errors
# =============================================================================


class BrowserError(KleinanzeigenSessionError):
    """Base exception for browser-automation errors."""

    pass


class BrowserConnectionError(BrowserError):
    """Raised when the browser cannot be reached or started."""

    pass


class NavigationError(BrowserError):
    """Raised when page navigation fails or times out."""

    pass


class SelectorNotFoundError(BrowserError):
    """Raised when an expected element never appears."""

    def __init__(self, selector: str) -> None:
        super().__init__(f"Selector not found: {selector}")
        self.selector = selector

