"""Login state machine: reuse stored cookies or fall back to a full login."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kleinanzeigen_session.core.analyzer import analyze
from kleinanzeigen_session.core.locks import AccountLocks
from kleinanzeigen_session.core.steps import StepOutcome, run_step
from kleinanzeigen_session.core.validator import (
    SessionValidator,
    detect_verification,
    is_authenticated,
)
from kleinanzeigen_session.exceptions import CookieStoreError, CorruptCookieStoreError
from kleinanzeigen_session.models.cookies import (
    CookieSet,
    ValidationMethod,
    ValidationResult,
)
from kleinanzeigen_session.models.outcomes import (
    LoginAttemptOutcome,
    LoginPath,
    ReasonCode,
)
from kleinanzeigen_session.utils.accounts import account_key
from kleinanzeigen_session.utils.constants import (
    BASE_URL,
    DEFAULT_VERIFICATION_REASON,
    LOGIN_URL,
    SELECTORS,
)
from kleinanzeigen_session.utils.logging import get_logger, mask_email


if TYPE_CHECKING:
    from kleinanzeigen_session.core.browser import (
        BrowserClient,
        BrowserPage,
        BrowserSession,
    )
    from kleinanzeigen_session.core.credentials import CredentialProvider
    from kleinanzeigen_session.core.verification import EmailVerifier
    from kleinanzeigen_session.storage.base import CookieStore
    from kleinanzeigen_session.utils.config import BrowserSettings

logger = get_logger(__name__)


@dataclass
class LoginTimeouts:
    """Per-phase browser timeouts in seconds."""

    login_page: float = 90.0
    gdpr: float = 5.0
    form: float = 5.0
    navigation: float = 30.0
    settle: float = 2.0
    verification: float = 60.0

    @classmethod
    def from_settings(
        cls,
        settings: BrowserSettings,
        verification: float = 60.0,
    ) -> LoginTimeouts:
        return cls(
            login_page=settings.login_page_timeout,
            gdpr=settings.gdpr_timeout,
            form=settings.form_timeout,
            navigation=settings.navigation_timeout,
            settle=settings.settle_delay,
            verification=verification,
        )


@dataclass
class _FullLoginState:
    logged_in: bool = False
    did_submit: bool = False
    timed_out: bool = False
    verification_reason: str | None = None
    verification_resolved: bool = False
    cookie_set_ref: str | None = None


class LoginOrchestrator:
    """
    Establish an authenticated session for an account.

    Flow per call:
        1. Load stored cookies (a corrupt record is deleted)
        2. Analyze expiry offline (an expired record is deleted)
        3. Probe a still-valid session live and skip the login if it works
        4. Otherwise submit credentials in the browser and store the cookies

    Browser work for one account is serialized by ``AccountLocks``; a caller
    that waited behind a completed login reuses its cookies.
    """

    def __init__(
        self,
        store: CookieStore,
        client: BrowserClient,
        credentials: CredentialProvider | None = None,
        verifier: EmailVerifier | None = None,
        validator: SessionValidator | None = None,
        locks: AccountLocks | None = None,
        endpoint: str | None = None,
        login_url: str = LOGIN_URL,
        home_url: str = BASE_URL,
        timeouts: LoginTimeouts | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.client = client
        self.credentials = credentials
        self.verifier = verifier
        self.locks = locks or AccountLocks()
        self.endpoint = endpoint
        self.login_url = login_url
        self.home_url = home_url
        self.timeouts = timeouts or LoginTimeouts()
        self._sleep = sleep
        self.validator = validator or SessionValidator(
            client,
            endpoint=endpoint,
            home_url=home_url,
            navigation_timeout=self.timeouts.navigation,
            settle_delay=self.timeouts.settle,
            sleep=sleep,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    async def login(
        self,
        email: str,
        password: str | None = None,
    ) -> LoginAttemptOutcome:
        """
        Log the account in, reusing stored cookies where possible.

        Raises:
            CookieStoreError: If the cookie store cannot be read or written
        """
        key = account_key(email)
        logger.info("Starting login flow", account=mask_email(email))

        async with self.locks.hold(key) as ticket:
            if ticket.completed_while_waiting:
                reused = await self._reuse_fresh(key)
                if reused is not None:
                    return reused

            stored = await self._load(key)
            if stored is not None:
                analysis = analyze(stored, account=email)
                if not analysis.is_valid:
                    logger.info(
                        "Stored cookies unusable, deleting",
                        account=mask_email(email),
                        reason=analysis.error_code,
                    )
                    await self.store.delete(key)
                else:
                    probe = await self.validator.validate(stored)
                    if probe.is_valid:
                        logger.info(
                            "Login successful with existing cookies",
                            account=mask_email(email),
                        )
                        self.locks.mark_verified(key)
                        return LoginAttemptOutcome(
                            succeeded=True,
                            logged_in=True,
                            did_submit_credentials=False,
                            path=LoginPath.SKIPPED,
                            cookie_set_ref=self.store.ref(key),
                            message="Login successful with existing cookies",
                        )
                    logger.info(
                        "Stored cookies rejected by site",
                        account=mask_email(email),
                        error=probe.error,
                    )

            secret = password or (
                self.credentials.password_for(email) if self.credentials else None
            )
            if not secret:
                logger.warning("No password available", account=mask_email(email))
                return LoginAttemptOutcome(
                    succeeded=False,
                    logged_in=False,
                    did_submit_credentials=False,
                    path=LoginPath.FULL_LOGIN,
                    failure_reason=ReasonCode.MISSING_CREDENTIALS,
                    message="Password required: no valid cookies stored",
                )

            outcome = await self._full_login(email, key, secret, stored)
            if outcome.logged_in:
                self.locks.mark_verified(key)
            return outcome

    async def probe(self, email: str) -> ValidationResult:
        """Live-check the stored session without logging in."""
        key = account_key(email)
        async with self.locks.hold(key):
            try:
                stored = await self.store.load(key)
            except CorruptCookieStoreError as e:
                return ValidationResult(
                    is_valid=False,
                    cookie_count=0,
                    method=ValidationMethod.LIVE_PROBE,
                    error=e.reason,
                    error_code=ReasonCode.CORRUPT_STORE.value,
                    account=email,
                )

            analysis = analyze(stored, account=email)
            if not analysis.is_valid:
                analysis.method = ValidationMethod.LIVE_PROBE
                return analysis

            probe = await self.validator.validate(stored)
            analysis.method = ValidationMethod.LIVE_PROBE
            analysis.is_valid = probe.is_valid
            if probe.is_valid:
                analysis.error = None
                analysis.error_code = None
            else:
                analysis.error = probe.error
                analysis.error_code = ReasonCode.SESSION_PROBE_FAILED.value
            return analysis

    # =========================================================================
    # Internals
    # =========================================================================

    async def _load(self, key: str) -> CookieSet | None:
        try:
            return await self.store.load(key)
        except CorruptCookieStoreError as e:
            logger.warning("Corrupt cookie record, deleting", account=key, error=e.reason)
            await self.store.delete(key)
            return None

    async def _reuse_fresh(self, key: str) -> LoginAttemptOutcome | None:
        fresh = await self._load(key)
        if fresh is None or not analyze(fresh).is_valid:
            return None
        logger.info("Reusing session from concurrent login", account=key)
        return LoginAttemptOutcome(
            succeeded=True,
            logged_in=True,
            did_submit_credentials=False,
            path=LoginPath.REUSED,
            cookie_set_ref=self.store.ref(key),
            message="Reused session established by a concurrent login",
        )

    async def _full_login(
        self,
        email: str,
        key: str,
        password: str,
        stale: CookieSet | None,
    ) -> LoginAttemptOutcome:
        state = _FullLoginState()
        session: BrowserSession | None = None
        page: BrowserPage | None = None
        try:
            session = await self.client.connect(self.endpoint)
            page = await session.new_page()
            if stale:
                await page.set_cookies(stale.to_browser())
                logger.debug("Stale cookies injected", count=len(stale))

            await self._drive_login_page(page, email, password, state)

            state.logged_in = await is_authenticated(page)
            if not state.logged_in:
                state.verification_reason = await detect_verification(page)
            state.cookie_set_ref = await self._persist(page, email, key)

            if state.verification_reason and self.verifier is not None:
                await self._complete_verification(
                    self.verifier, page, email, key, state
                )
        except CookieStoreError:
            raise
        except Exception as e:
            logger.error("Login failed", account=mask_email(email), error=str(e))
            return LoginAttemptOutcome(
                succeeded=False,
                logged_in=False,
                did_submit_credentials=state.did_submit,
                path=LoginPath.FULL_LOGIN,
                cookie_set_ref=state.cookie_set_ref,
                failure_reason=ReasonCode.LOGIN_FAILED,
                message=str(e) or type(e).__name__,
            )
        finally:
            await self._release(session, page)

        return self._outcome(email, state)

    async def _drive_login_page(
        self,
        page: BrowserPage,
        email: str,
        password: str,
        state: _FullLoginState,
    ) -> None:
        nav = await run_step(
            "open_login_page",
            page.goto(self.login_url, timeout=self.timeouts.login_page),
        )
        if nav.outcome is StepOutcome.TIMED_OUT:
            state.timed_out = True
            return
        await self._sleep(self.timeouts.settle)

        # Consent banner is optional
        gdpr = await run_step(
            "gdpr_banner",
            page.wait_for_selector(SELECTORS["gdpr_accept"], self.timeouts.gdpr),
        )
        if gdpr.ok:
            await run_step("gdpr_accept", page.click(SELECTORS["gdpr_accept"]))

        form = await run_step(
            "login_form",
            page.wait_for_selector(SELECTORS["email_input"], self.timeouts.form),
        )
        if not form.ok:
            # Policy: a missing form is read as "already logged in" and left
            # to the authentication check below.
            logger.info("Login form not found, may already be logged in")
            return

        submit = await run_step(
            "submit_credentials",
            self._submit_credentials(page, email, password),
        )
        if not submit.ok:
            return
        state.did_submit = True

        await run_step(
            "await_login",
            page.wait_for_selector(SELECTORS["user_marker"], self.timeouts.navigation),
        )

    async def _submit_credentials(
        self,
        page: BrowserPage,
        email: str,
        password: str,
    ) -> None:
        await page.fill(SELECTORS["email_input"], email)
        await page.fill(SELECTORS["password_input"], password)
        await page.click(SELECTORS["login_button"])
        logger.info("Credentials submitted", account=mask_email(email))

    async def _persist(self, page: BrowserPage, email: str, key: str) -> str | None:
        cookies = CookieSet.from_browser(await page.get_cookies(), account=email)
        if not cookies:
            logger.warning("Browser returned no cookies", account=mask_email(email))
            return None
        return await self.store.save(key, cookies)

    async def _complete_verification(
        self,
        verifier: EmailVerifier,
        page: BrowserPage,
        email: str,
        key: str,
        state: _FullLoginState,
    ) -> None:
        logger.info(
            "E-mail verification required",
            account=mask_email(email),
            reason=state.verification_reason,
        )
        result = await verifier.verify(key, self.timeouts.verification)
        if not result.success:
            if result.reason:
                state.verification_reason = result.reason
            logger.warning(
                "E-mail verification failed",
                account=mask_email(email),
                reason=state.verification_reason,
            )
            return

        state.verification_resolved = True
        nav = await run_step(
            "open_home_page",
            page.goto(self.home_url, timeout=self.timeouts.navigation),
        )
        if not nav.ok:
            return
        await self._sleep(self.timeouts.settle)
        state.logged_in = await is_authenticated(page)
        state.cookie_set_ref = await self._persist(page, email, key) or state.cookie_set_ref

    def _outcome(self, email: str, state: _FullLoginState) -> LoginAttemptOutcome:
        needs_verification = (
            not state.logged_in
            and state.verification_reason is not None
            and not state.verification_resolved
        )
        if state.logged_in:
            reason = None
            message = "Login successful"
        elif needs_verification:
            reason = ReasonCode.VERIFICATION_REQUIRED
            message = "E-mail verification required"
        elif state.timed_out:
            reason = ReasonCode.AUTOMATION_TIMEOUT
            message = "Login page did not load in time"
        else:
            reason = ReasonCode.LOGIN_FAILED
            message = "Login attempted" if state.did_submit else "Login failed"

        logger.info(
            "Login flow finished",
            account=mask_email(email),
            logged_in=state.logged_in,
            did_submit=state.did_submit,
            reason=reason.value if reason else None,
        )
        return LoginAttemptOutcome(
            succeeded=state.logged_in or state.did_submit,
            logged_in=state.logged_in,
            did_submit_credentials=state.did_submit,
            path=LoginPath.FULL_LOGIN,
            cookie_set_ref=state.cookie_set_ref,
            failure_reason=reason,
            requires_email_verification=needs_verification,
            verification_reason=(
                (state.verification_reason or DEFAULT_VERIFICATION_REASON)
                if needs_verification
                else None
            ),
            message=message,
        )

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
