"""Session service - shared business logic for the API and CLI."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from kleinanzeigen_session.core import analyzer, tokens
from kleinanzeigen_session.core.browser import NodriverBrowserClient
from kleinanzeigen_session.core.credentials import CredentialProvider
from kleinanzeigen_session.core.orchestrator import LoginOrchestrator, LoginTimeouts
from kleinanzeigen_session.core.scheduler import RefreshScheduler
from kleinanzeigen_session.models.cookies import stored_account
from kleinanzeigen_session.storage.json_storage import JsonCookieStore
from kleinanzeigen_session.utils.accounts import account_key
from kleinanzeigen_session.utils.logging import get_logger


if TYPE_CHECKING:
    from kleinanzeigen_session.core.browser import BrowserClient
    from kleinanzeigen_session.core.verification import EmailVerifier
    from kleinanzeigen_session.models.cookies import ValidationResult
    from kleinanzeigen_session.models.outcomes import (
        LoginAttemptOutcome,
        RefreshResult,
        SchedulerStatus,
        SweepReport,
    )
    from kleinanzeigen_session.storage.base import CookieStore
    from kleinanzeigen_session.utils.config import Settings

logger = get_logger(__name__)

# Interval used when auto-refresh is started without one
DEFAULT_START_INTERVAL_HOURS = 0.25


class SessionService:
    """
    Facade over the store, login orchestrator and refresh scheduler.

    The API and CLI talk only to this class.
    """

    def __init__(
        self,
        store: CookieStore,
        orchestrator: LoginOrchestrator,
        scheduler: RefreshScheduler,
        display_timezone: str = "Europe/Berlin",
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self.display_timezone = display_timezone

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: BrowserClient | None = None,
        verifier: EmailVerifier | None = None,
        store: CookieStore | None = None,
    ) -> SessionService:
        """Wire up the default components from configuration."""
        store = store or JsonCookieStore(settings.storage.cookies_dir)
        client = client or NodriverBrowserClient.from_settings(settings.browser)
        orchestrator = LoginOrchestrator(
            store=store,
            client=client,
            credentials=CredentialProvider.from_settings(settings.marketplace),
            verifier=verifier,
            endpoint=settings.browser.endpoint,
            login_url=settings.marketplace.login_url,
            home_url=settings.marketplace.base_url,
            timeouts=LoginTimeouts.from_settings(
                settings.browser,
                verification=settings.refresh.verification_timeout,
            ),
        )
        scheduler = RefreshScheduler(
            orchestrator,
            store,
            threshold_hours=settings.refresh.threshold_hours,
            default_interval_hours=settings.refresh.interval_hours,
        )
        return cls(store, orchestrator, scheduler, settings.display_timezone)

    # =========================================================================
    # Login
    # =========================================================================

    async def login(
        self,
        email: str,
        password: str | None = None,
    ) -> LoginAttemptOutcome:
        return await self.orchestrator.login(email, password)

    async def check_login(self, email: str) -> ValidationResult:
        """Live probe of the stored session."""
        return await self.orchestrator.probe(email)

    # =========================================================================
    # Cookie inspection
    # =========================================================================

    async def account_status(self, email: str) -> ValidationResult:
        """Offline expiry analysis for one account."""
        raw = await self.store.load_raw(account_key(email))
        return analyzer.analyze_payload(raw, account=email)

    async def cookie_details(self, email: str) -> ValidationResult | None:
        """Analysis for a stored account, or None if nothing is stored."""
        raw = await self.store.load_raw(account_key(email))
        if raw is None:
            return None
        return analyzer.analyze_payload(raw, account=email)

    async def all_statuses(self) -> list[ValidationResult]:
        results = []
        for key in await self.store.list_accounts():
            raw = await self.store.load_raw(key)
            email = stored_account(raw) or key
            results.append(analyzer.analyze_payload(raw, account=email))
        return results

    async def list_users(self) -> list[dict[str, Any]]:
        return [
            {
                "email": r.account,
                "is_valid": r.is_valid,
                "cookie_count": r.cookie_count,
                "next_expiry": r.next_expiry.isoformat() if r.next_expiry else None,
                "validity_duration": r.validity_duration,
            }
            for r in await self.all_statuses()
        ]

    async def stats(self) -> dict[str, Any]:
        return analyzer.summarize(await self.all_statuses())

    async def expiring_soon(self, days: int = 7) -> list[dict[str, Any]]:
        return analyzer.expiring_soon(await self.all_statuses(), days)

    async def cleanup(self) -> dict[str, int]:
        """
        Delete every record that is invalid offline.

        Each record is judged under its account lock, so a login that is
        saving fresh cookies finishes before the record is re-read.
        """
        deleted = kept = 0
        for key in await self.store.list_accounts():
            async with self.orchestrator.locks.hold(key):
                result = analyzer.analyze_payload(await self.store.load_raw(key))
                if result.is_valid:
                    kept += 1
                    continue
                if await self.store.delete(key):
                    logger.info("Deleted expired cookies", account=key)
                    deleted += 1
        return {"deleted": deleted, "kept": kept}

    async def analyze_tokens(self, email: str) -> dict[str, Any] | None:
        """Token summary, or None if the account has no stored cookies."""
        key = account_key(email)
        if await self.store.load_raw(key) is None:
            return None
        now = datetime.now(timezone.utc)
        claims = tokens.extract_claims(
            await self.store.load(key),
            now=now,
            tz_name=self.display_timezone,
        )
        return tokens.summarize_tokens(email, claims, now)

    # =========================================================================
    # Refresh
    # =========================================================================

    async def refresh(self, email: str) -> RefreshResult:
        return await self.scheduler.refresh_account(email)

    async def refresh_all(self) -> SweepReport:
        return await self.scheduler.sweep(force=True)

    async def refresh_status(self, threshold_hours: float | None = None) -> dict[str, Any]:
        return await self.scheduler.check_refresh_needed(threshold_hours)

    def start_auto_refresh(self, interval_hours: float | None = None) -> SchedulerStatus:
        return self.scheduler.start(
            interval_hours if interval_hours is not None else DEFAULT_START_INTERVAL_HOURS
        )

    def stop_auto_refresh(self) -> SchedulerStatus:
        return self.scheduler.stop()

    def auto_refresh_status(self) -> SchedulerStatus:
        return self.scheduler.status()

    async def close(self) -> None:
        self.scheduler.stop()

