"""Browser automation client using nodriver (Chrome DevTools Protocol)."""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

import nodriver
import nodriver.cdp.network as net

from kleinanzeigen_session.exceptions import (
    BrowserConnectionError,
    NavigationError,
    SelectorNotFoundError,
)
from kleinanzeigen_session.utils.logging import get_logger


if TYPE_CHECKING:
    from nodriver import Tab
    from kleinanzeigen_session.utils.config import BrowserSettings

__all__ = [
    "BrowserClient",
    "BrowserPage",
    "BrowserSession",
    "NodriverBrowserClient",
    "parse_endpoint",
]

logger = get_logger(__name__)


# =============================================================================
# Interfaces
# =============================================================================


class BrowserPage(ABC):
    """One browser tab."""

    @abstractmethod
    async def set_cookies(self, cookies: list[dict[str, Any]]) -> None: ...

    @abstractmethod
    async def goto(self, url: str, timeout: float) -> None:
        """Navigate. Raises ``asyncio.TimeoutError`` after ``timeout`` seconds."""
        ...

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        """Raises ``SelectorNotFoundError`` if nothing matches in time."""
        ...

    @abstractmethod
    async def fill(self, selector: str, value: str) -> None: ...

    @abstractmethod
    async def click(self, selector: str) -> None: ...

    @abstractmethod
    async def evaluate(self, expression: str) -> Any: ...

    @abstractmethod
    async def get_cookies(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def close(self) -> None: ...


class BrowserSession(ABC):
    """A connection to one browser process."""

    @abstractmethod
    async def new_page(self) -> BrowserPage: ...

    @abstractmethod
    async def disconnect(self) -> None: ...


class BrowserClient(ABC):
    """Factory for browser sessions."""

    @abstractmethod
    async def connect(self, endpoint: str | None = None) -> BrowserSession:
        """
        Attach to a running browser, or start one when no endpoint is given.

        Raises:
            BrowserConnectionError: If the browser cannot be reached
        """
        ...


# =============================================================================
# nodriver adapter
# =============================================================================


def parse_endpoint(endpoint: str) -> tuple[str, int]:
    """Split ``host:port`` (an ``http://`` or ``ws://`` scheme is allowed)."""
    value = endpoint.split("://", 1)[-1].split("/", 1)[0]
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise BrowserConnectionError(f"Invalid browser endpoint: {endpoint}")
    return host or "127.0.0.1", int(port)


def _same_site(value: str | None) -> net.CookieSameSite | None:
    if not value:
        return None
    try:
        return net.CookieSameSite(value.capitalize())
    except ValueError:
        return None


def _to_cookie_param(cookie: dict[str, Any]) -> net.CookieParam:
    expires = cookie.get("expires")
    return net.CookieParam(
        name=cookie["name"],
        value=cookie.get("value", ""),
        domain=cookie.get("domain") or ".kleinanzeigen.de",
        path=cookie.get("path", "/"),
        secure=cookie.get("secure"),
        http_only=cookie.get("httpOnly"),
        same_site=_same_site(cookie.get("sameSite")),
        expires=(
            net.TimeSinceEpoch(expires)
            if isinstance(expires, (int, float)) and expires > 0
            else None
        ),
    )


def _from_cdp_cookie(c: net.Cookie) -> dict[str, Any]:
    return {
        "name": c.name,
        "value": c.value,
        "domain": c.domain,
        "path": c.path,
        "expires": c.expires,
        "httpOnly": c.http_only,
        "secure": c.secure,
        "session": c.session,
        "sameSite": c.same_site.value if c.same_site else None,
    }


class NodriverPage(BrowserPage):
    """A nodriver tab behind the ``BrowserPage`` interface."""

    def __init__(self, tab: Tab) -> None:
        self._tab = tab

    async def set_cookies(self, cookies: list[dict[str, Any]]) -> None:
        if not cookies:
            return
        params = [_to_cookie_param(c) for c in cookies if c.get("name")]
        await self._tab.send(net.set_cookies(params))
        logger.debug("Cookies set", count=len(params))

    async def goto(self, url: str, timeout: float) -> None:
        logger.info("Navigating to URL", url=url)
        try:
            await asyncio.wait_for(self._tab.get(url), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Navigation timed out", url=url, timeout=timeout)
            raise
        except Exception as e:
            logger.error("Navigation failed", url=url, error=str(e))
            raise NavigationError(f"Failed to open {url}: {e}") from e

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        try:
            element = await self._tab.select(selector, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SelectorNotFoundError(selector) from e
        if element is None:
            raise SelectorNotFoundError(selector)

    async def _element(self, selector: str) -> Any:
        try:
            element = await self._tab.select(selector, timeout=5)
        except asyncio.TimeoutError as e:
            raise SelectorNotFoundError(selector) from e
        if element is None:
            raise SelectorNotFoundError(selector)
        return element

    async def fill(self, selector: str, value: str) -> None:
        element = await self._element(selector)
        await element.clear_input()
        await element.send_keys(value)

    async def click(self, selector: str) -> None:
        element = await self._element(selector)
        await element.click()

    async def evaluate(self, expression: str) -> Any:
        return await self._tab.evaluate(expression, return_by_value=True)

    async def get_cookies(self) -> list[dict[str, Any]]:
        result = await self._tab.send(net.get_cookies())
        return [_from_cdp_cookie(c) for c in result]

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await self._tab.close()


class NodriverSession(BrowserSession):
    """Owns a nodriver ``Browser``; stops it only if it launched it."""

    def __init__(self, browser: nodriver.Browser, owned: bool) -> None:
        self._browser = browser
        self._owned = owned
        self._pages: list[NodriverPage] = []

    async def new_page(self) -> BrowserPage:
        tab = await self._browser.get("about:blank", new_tab=True)
        page = NodriverPage(tab)
        self._pages.append(page)
        logger.debug("New page created", total_pages=len(self._pages))
        return page

    async def disconnect(self) -> None:
        for page in self._pages:
            await page.close()
        self._pages.clear()
        if self._owned:
            with contextlib.suppress(Exception):
                self._browser.stop()
            logger.info("Browser closed")


class NodriverBrowserClient(BrowserClient):
    """
    Connects to Chrome via nodriver.

    With an endpoint the client attaches to an already running Chrome
    (``--remote-debugging-port``) and leaves it running on disconnect.
    Without one it launches a browser with a persistent profile.
    """

    def __init__(
        self,
        headless: bool = True,
        user_data_dir: str | None = None,
        default_endpoint: str | None = None,
    ) -> None:
        self.headless = headless
        self.user_data_dir = user_data_dir
        self.default_endpoint = default_endpoint

    @classmethod
    def from_settings(cls, settings: BrowserSettings) -> NodriverBrowserClient:
        return cls(
            headless=settings.headless,
            user_data_dir=settings.user_data_dir,
            default_endpoint=settings.endpoint,
        )

    async def connect(self, endpoint: str | None = None) -> BrowserSession:
        endpoint = endpoint or self.default_endpoint
        try:
            if endpoint:
                host, port = parse_endpoint(endpoint)
                logger.info("Attaching to Chrome", host=host, port=port)
                browser = await nodriver.start(host=host, port=port)
                return NodriverSession(browser, owned=False)

            user_data = self.user_data_dir or "./data/chrome_profile"
            Path(user_data).mkdir(parents=True, exist_ok=True)
            logger.info("Starting Chrome browser", headless=self.headless)
            browser = await nodriver.start(
                headless=self.headless,
                user_data_dir=user_data,
                browser_args=[
                    "--no-first-run",
                    "--no-default-browser-check",
                    "--disable-dev-shm-usage",
                ],
                lang="de-DE",
            )
            return NodriverSession(browser, owned=True)
        except BrowserConnectionError:
            raise
        except Exception as e:
            logger.error("Browser connection failed", error=str(e))
            raise BrowserConnectionError(f"Cannot connect to browser: {e}") from e
