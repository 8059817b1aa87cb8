"""Live session probing against the marketplace home page."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from kleinanzeigen_session.models.outcomes import ProbeResult
from kleinanzeigen_session.utils.constants import (
    AUTHENTICATED_JS,
    BASE_URL,
    VERIFICATION_JS,
)
from kleinanzeigen_session.utils.logging import get_logger


if TYPE_CHECKING:
    from kleinanzeigen_session.core.browser import (
        BrowserClient,
        BrowserPage,
        BrowserSession,
    )
    from kleinanzeigen_session.models.cookies import CookieSet

logger = get_logger(__name__)


async def is_authenticated(page: BrowserPage) -> bool:
    """
    Check whether the current page shows a logged-in user.

    True when the ``#user-email`` marker reads "angemeldet als:", or when
    account markers are present and no login link is visible.
    """
    try:
        return bool(await page.evaluate(AUTHENTICATED_JS))
    except Exception as e:
        logger.warning("Login state check failed", error=str(e))
        return False


async def detect_verification(page: BrowserPage) -> str | None:
    """Reason code if the page asks for an e-mail confirmation, else None."""
    try:
        reason = await page.evaluate(VERIFICATION_JS)
    except Exception as e:
        logger.debug("Verification check failed", error=str(e))
        return None
    return str(reason) if reason else None


class SessionValidator:
    """Injects stored cookies into a fresh page and checks the login state."""

    def __init__(
        self,
        client: BrowserClient,
        endpoint: str | None = None,
        home_url: str = BASE_URL,
        navigation_timeout: float = 30.0,
        settle_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.endpoint = endpoint
        self.home_url = home_url
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self._sleep = sleep

    async def validate(self, cookie_set: CookieSet) -> ProbeResult:
        """Probe the session. Never raises; failures come back as invalid."""
        session: BrowserSession | None = None
        page: BrowserPage | None = None
        try:
            session = await self.client.connect(self.endpoint)
            page = await session.new_page()
            await page.set_cookies(cookie_set.to_browser())
            await page.goto(self.home_url, timeout=self.navigation_timeout)
            await self._sleep(self.settle_delay)
            logged_in = await is_authenticated(page)
            logger.info("Session probed", logged_in=logged_in)
            return ProbeResult(
                is_valid=logged_in,
                error=None if logged_in else "Not logged in",
            )
        except asyncio.TimeoutError:
            logger.warning("Session probe timed out")
            return ProbeResult(is_valid=False, error="Navigation timed out")
        except Exception as e:
            logger.warning("Session probe failed", error=str(e))
            return ProbeResult(is_valid=False, error=str(e) or type(e).__name__)
        finally:
            await self._release(session, page)

    async def _release(
        self,
        session: BrowserSession | None,
        page: BrowserPage | None,
    ) -> None:
        if page is not None:
            try:
                await page.close()
            except Exception as e:
                logger.debug("Page close failed", error=str(e))
        if session is not None:
            try:
                await session.disconnect()
            except Exception as e:
                logger.debug("Browser disconnect failed", error=str(e))
