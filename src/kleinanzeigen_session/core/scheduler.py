"""Background cookie refresh timer."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from kleinanzeigen_session.core.analyzer import analyze, analyze_payload
from kleinanzeigen_session.exceptions import CorruptCookieStoreError
from kleinanzeigen_session.models.cookies import ValidationResult, stored_account
from kleinanzeigen_session.models.outcomes import (
    ReasonCode,
    RefreshResult,
    SchedulerStatus,
    SweepReport,
)
from kleinanzeigen_session.utils.accounts import account_key
from kleinanzeigen_session.utils.logging import get_logger, mask_email


if TYPE_CHECKING:
    from kleinanzeigen_session.core.orchestrator import LoginOrchestrator
    from kleinanzeigen_session.storage.base import CookieStore

logger = get_logger(__name__)

DEFAULT_INTERVAL_HOURS = 12.0
DEFAULT_THRESHOLD_HOURS = 6.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccountState:
    """Stored account as seen by a sweep."""

    key: str
    email: str
    result: ValidationResult


class RefreshScheduler:
    """
    Periodically re-login accounts whose cookies are invalid or expiring.

    At most one timer task exists. ``start`` replaces it; ``stop`` disarms it.
    Stopping during a sweep lets the account in progress finish and skips
    the rest.
    """

    def __init__(
        self,
        orchestrator: LoginOrchestrator,
        store: CookieStore,
        threshold_hours: float = DEFAULT_THRESHOLD_HOURS,
        default_interval_hours: float = DEFAULT_INTERVAL_HOURS,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self.threshold_hours = threshold_hours
        self.default_interval_hours = default_interval_hours
        self._clock = clock
        self._sleep = sleep

        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._interval_hours: float | None = None
        self._in_sweep = False
        self._next_sweep_at: datetime | None = None
        self.last_sweep_at: datetime | None = None

    # =========================================================================
    # Timer control
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_hours: float | None = None) -> SchedulerStatus:
        """
        Arm the timer, replacing any existing one.

        Must be called from a running event loop.
        """
        interval = interval_hours if interval_hours is not None else (
            self.default_interval_hours
        )
        if interval <= 0:
            raise ValueError("interval_hours must be positive")
        if interval * 60 < 1:
            logger.warning("Refresh interval below one minute", interval_hours=interval)

        self._disarm()
        self._interval_hours = interval
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation, interval * 3600)
        )
        logger.info("Cookie auto-refresh started", interval_hours=interval)
        return self.status()

    def stop(self) -> SchedulerStatus:
        """Disarm the timer. Safe to call when not running."""
        was_running = self.is_running
        self._disarm()
        self._interval_hours = None
        if was_running:
            logger.info("Cookie auto-refresh stopped")
        return self.status()

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            is_running=self.is_running,
            interval_hours=self._interval_hours if self.is_running else None,
            last_sweep_at=self.last_sweep_at,
            next_sweep_at=self._next_sweep_at if self.is_running else None,
        )

    def _disarm(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        self._next_sweep_at = None
        # A sweeping task notices the new generation after its current account
        if task is not None and not task.done() and not self._in_sweep:
            task.cancel()

    async def _run(self, generation: int, interval_seconds: float) -> None:
        while generation == self._generation:
            self._next_sweep_at = self._clock() + timedelta(seconds=interval_seconds)
            await self._sleep(interval_seconds)
            if generation != self._generation:
                return
            self._in_sweep = True
            try:
                await self.sweep()
            except Exception as e:
                logger.error("Refresh sweep failed", error=str(e))
            finally:
                self._in_sweep = False

    # =========================================================================
    # Sweeps
    # =========================================================================

    async def _account_states(self, now: datetime) -> list[AccountState]:
        states: list[AccountState] = []
        for key in await self.store.list_accounts():
            try:
                raw = await self.store.load_raw(key)
                email = stored_account(raw) or key
                result = analyze_payload(raw, now, account=email)
            except Exception as e:
                logger.error("Cookie record unreadable", account=key, error=str(e))
                email = key
                result = ValidationResult(
                    is_valid=False,
                    cookie_count=0,
                    error=str(e) or type(e).__name__,
                    error_code=ReasonCode.CORRUPT_STORE.value,
                    account=key,
                    validated_at=now,
                )
            states.append(AccountState(key=key, email=email, result=result))
        return states

    def _needs_refresh(
        self,
        result: ValidationResult,
        now: datetime,
        threshold_hours: float,
    ) -> bool:
        if not result.is_valid or result.next_expiry is None:
            return True
        return result.next_expiry - now <= timedelta(hours=threshold_hours)

    async def check_refresh_needed(
        self,
        threshold_hours: float | None = None,
    ) -> dict[str, Any]:
        """Accounts a sweep would refresh right now."""
        threshold = threshold_hours if threshold_hours is not None else (
            self.threshold_hours
        )
        now = self._clock()
        users = [
            s.email
            for s in await self._account_states(now)
            if self._needs_refresh(s.result, now, threshold)
        ]
        return {
            "needs_refresh": bool(users),
            "users": users,
            "threshold_hours": threshold,
        }

    async def sweep(self, force: bool = False) -> SweepReport:
        """
        Refresh every stored account that is invalid or close to expiry.

        With ``force`` every stored account is refreshed.

        Accounts are handled one after another; a failure on one account is
        logged and does not stop the others.
        """
        generation = self._generation
        now = self._clock()
        report = SweepReport(started_at=now)
        logger.info("Refresh sweep started")
        try:
            states = await self._account_states(now)
            report.checked = len(states)
            selected = [
                s for s in states
                if force or self._needs_refresh(s.result, now, self.threshold_hours)
            ]
            report.selected = [s.email for s in selected]

            for state in selected:
                if generation != self._generation:
                    report.aborted = True
                    logger.info(
                        "Refresh sweep abandoned",
                        next_account=mask_email(state.email),
                    )
                    break
                try:
                    report.results.append(await self.refresh_account(state.email))
                except Exception as e:
                    logger.error(
                        "Account refresh failed",
                        account=mask_email(state.email),
                        error=str(e),
                    )
                    report.errors[state.email] = str(e) or type(e).__name__
        finally:
            self.last_sweep_at = self._clock()
            report.finished_at = self.last_sweep_at

        logger.info(
            "Refresh sweep finished",
            checked=report.checked,
            selected=len(report.selected),
            refreshed=report.refreshed,
            errors=len(report.errors),
        )
        return report

    async def refresh_account(self, email: str) -> RefreshResult:
        """
        Re-run the login flow for one account.

        Raises:
            CookieStoreError: If the cookie store cannot be read or written
        """
        key = account_key(email)
        logger.info("Refreshing cookies", account=mask_email(email))
        old = analyze_payload(await self.store.load_raw(key), self._clock())

        outcome = await self.orchestrator.login(email)

        try:
            new = analyze(await self.store.load(key), self._clock())
        except CorruptCookieStoreError:
            new = None

        if outcome.succeeded:
            message = f"Cookies refreshed successfully for {email}"
        else:
            message = f"Failed to refresh cookies: {outcome.message}"
        return RefreshResult(
            email=email,
            success=outcome.succeeded,
            message=message,
            refreshed_at=self._clock(),
            old_expiry=old.next_expiry,
            new_expiry=new.next_expiry if new else None,
            outcome=outcome,
        )
