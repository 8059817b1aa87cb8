"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from kleinanzeigen_session.core.browser import BrowserClient, BrowserPage, BrowserSession
from kleinanzeigen_session.core.credentials import CredentialProvider
from kleinanzeigen_session.core.orchestrator import LoginOrchestrator, LoginTimeouts
from kleinanzeigen_session.core.scheduler import RefreshScheduler
from kleinanzeigen_session.exceptions import SelectorNotFoundError
from kleinanzeigen_session.models.cookies import CookieSet
from kleinanzeigen_session.models.outcomes import VerificationResult
from kleinanzeigen_session.services.session_service import SessionService
from kleinanzeigen_session.storage.memory_storage import InMemoryCookieStore
from kleinanzeigen_session.utils.constants import (
    AUTHENTICATED_JS,
    SELECTORS,
    VERIFICATION_JS,
)


EMAIL = "max.muster@example.de"
PASSWORD = "geheim123"


# =============================================================================
# Cookie helpers
# =============================================================================


def make_cookie(
    name: str,
    expires_in: timedelta | None = timedelta(days=30),
    value: str = "value",
) -> dict[str, Any]:
    """Browser cookie dict expiring ``expires_in`` from now (None = session)."""
    expires = (
        (datetime.now(timezone.utc) + expires_in).timestamp()
        if expires_in is not None
        else -1
    )
    return {
        "name": name,
        "value": value,
        "domain": ".kleinanzeigen.de",
        "path": "/",
        "expires": expires,
        "httpOnly": True,
        "secure": True,
    }


def make_cookie_set(email: str, *cookies: dict[str, Any]) -> CookieSet:
    return CookieSet.from_browser(list(cookies), account=email)


async def no_sleep(_seconds: float) -> None:
    """Stand-in for ``asyncio.sleep`` that returns at once."""
    return None


# =============================================================================
# Fake browser
# =============================================================================


class FakePage(BrowserPage):
    """Page whose behaviour is driven by its ``FakeBrowser``."""

    def __init__(self, browser: FakeBrowser) -> None:
        self.browser = browser
        self.authenticated = browser.session_valid
        self.injected: list[dict[str, Any]] = []
        self.visited: list[str] = []
        self.filled: dict[str, str] = {}
        self.clicked: list[str] = []
        self.submitted = False
        self.closed = False

    async def set_cookies(self, cookies: list[dict[str, Any]]) -> None:
        self.injected.extend(cookies)

    async def goto(self, url: str, timeout: float) -> None:
        await asyncio.sleep(0)
        if self.browser.navigation_timeout:
            raise asyncio.TimeoutError
        self.visited.append(url)

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        present = {
            SELECTORS["gdpr_accept"]: self.browser.gdpr_present,
            SELECTORS["email_input"]: self.browser.form_present,
            SELECTORS["user_marker"]: self.authenticated,
        }
        if not present.get(selector, True):
            raise SelectorNotFoundError(selector)

    async def fill(self, selector: str, value: str) -> None:
        self.filled[selector] = value

    async def click(self, selector: str) -> None:
        self.clicked.append(selector)
        if selector == SELECTORS["login_button"]:
            self.submitted = True
            self.authenticated = self.browser.login_succeeds

    async def evaluate(self, expression: str) -> Any:
        if expression == AUTHENTICATED_JS:
            return self.authenticated or self.browser.verified
        if expression == VERIFICATION_JS:
            return None if self.browser.verified else self.browser.verification_reason
        return None

    async def get_cookies(self) -> list[dict[str, Any]]:
        return list(self.browser.fresh_cookies)

    async def close(self) -> None:
        self.closed = True


class FakeSession(BrowserSession):
    def __init__(self, browser: FakeBrowser) -> None:
        self.browser = browser
        self.disconnected = False

    async def new_page(self) -> BrowserPage:
        page = FakePage(self.browser)
        self.browser.pages.append(page)
        return page

    async def disconnect(self) -> None:
        self.disconnected = True


class FakeBrowser(BrowserClient):
    """
    Scriptable ``BrowserClient``.

    Attributes:
        session_valid: Whether the site accepts the injected cookies
        login_succeeds: Whether submitting the credentials logs the user in
        form_present: Whether the credential form shows up
        gdpr_present: Whether the consent banner shows up
        verification_reason: Reported by the verification check
        navigation_timeout: Every navigation times out
        connect_error: Raised from ``connect``
        hold_connects: Block connects until this many are in flight
    """

    def __init__(self) -> None:
        self.session_valid = False
        self.login_succeeds = True
        self.form_present = True
        self.gdpr_present = False
        self.verification_reason: str | None = None
        self.verified = False
        self.navigation_timeout = False
        self.connect_error: Exception | None = None
        self.fresh_cookies = [
            make_cookie("access_token", timedelta(hours=12)),
            make_cookie("refresh_token", timedelta(days=30)),
        ]
        self.hold_connects: int | None = None

        self.endpoints: list[str | None] = []
        self.sessions: list[FakeSession] = []
        self.pages: list[FakePage] = []
        self._released = asyncio.Event()

    @property
    def connect_count(self) -> int:
        return len(self.endpoints)

    async def connect(self, endpoint: str | None = None) -> BrowserSession:
        self.endpoints.append(endpoint)
        if self.connect_error is not None:
            raise self.connect_error
        if self.hold_connects is not None:
            if self.connect_count >= self.hold_connects:
                self._released.set()
            await self._released.wait()
        await asyncio.sleep(0)
        session = FakeSession(self)
        self.sessions.append(session)
        return session


class FakeVerifier:
    """E-mail verifier returning a fixed result."""

    def __init__(self, browser: FakeBrowser, result: VerificationResult) -> None:
        self.browser = browser
        self.result = result
        self.calls: list[tuple[str, float]] = []

    async def verify(self, account_key: str, timeout: float) -> VerificationResult:
        self.calls.append((account_key, timeout))
        if self.result.success:
            self.browser.verified = True
        return self.result


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def store() -> InMemoryCookieStore:
    return InMemoryCookieStore()


@pytest.fixture
def credentials() -> CredentialProvider:
    return CredentialProvider({EMAIL: PASSWORD})


@pytest.fixture
def orchestrator(
    store: InMemoryCookieStore,
    browser: FakeBrowser,
    credentials: CredentialProvider,
) -> LoginOrchestrator:
    return LoginOrchestrator(
        store=store,
        client=browser,
        credentials=credentials,
        timeouts=LoginTimeouts(settle=0),
        sleep=no_sleep,
    )


@pytest.fixture
def scheduler(
    orchestrator: LoginOrchestrator,
    store: InMemoryCookieStore,
) -> RefreshScheduler:
    return RefreshScheduler(orchestrator, store, threshold_hours=6)


@pytest.fixture
def session_service(
    store: InMemoryCookieStore,
    orchestrator: LoginOrchestrator,
    scheduler: RefreshScheduler,
) -> SessionService:
    return SessionService(store, orchestrator, scheduler)
