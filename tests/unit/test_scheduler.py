"""Unit tests for the refresh scheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_cookie, make_cookie_set

from kleinanzeigen_session.core.scheduler import RefreshScheduler
from kleinanzeigen_session.exceptions import CookieStoreError
from kleinanzeigen_session.models.outcomes import (
    LoginAttemptOutcome,
    LoginPath,
    ReasonCode,
)
from kleinanzeigen_session.storage.memory_storage import InMemoryCookieStore
from kleinanzeigen_session.utils.accounts import account_key


SOON = "soon@example.de"
LATER = "later@example.de"
MUCH_LATER = "much.later@example.de"


class ManualSleep:
    """Sleep replacement whose waits end only when ``fire`` is called."""

    def __init__(self) -> None:
        self.pending: list[tuple[float, asyncio.Future[None]]] = []

    async def __call__(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self.pending.append((seconds, future))
        await future

    def fire(self) -> None:
        pending, self.pending = self.pending, []
        for _, future in pending:
            if not future.done():
                future.set_result(None)


async def settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def outcome(succeeded: bool = True) -> LoginAttemptOutcome:
    return LoginAttemptOutcome(
        succeeded=succeeded,
        logged_in=succeeded,
        did_submit_credentials=True,
        path=LoginPath.FULL_LOGIN,
        failure_reason=None if succeeded else ReasonCode.LOGIN_FAILED,
        message="Login successful" if succeeded else "Login failed",
    )


async def seed(store: InMemoryCookieStore, email: str, expires_in: timedelta) -> None:
    await store.save(
        account_key(email),
        make_cookie_set(email, make_cookie("access_token", expires_in)),
    )


@pytest.fixture
def orchestrator() -> MagicMock:
    mock = MagicMock()
    mock.login = AsyncMock(return_value=outcome())
    return mock


@pytest.fixture
async def three_accounts(store: InMemoryCookieStore) -> InMemoryCookieStore:
    await seed(store, SOON, timedelta(hours=2))
    await seed(store, LATER, timedelta(days=3))
    await seed(store, MUCH_LATER, timedelta(days=20))
    return store


class TestSweep:
    """Tests for sweep()."""

    async def test_only_accounts_within_threshold_refreshed(
        self,
        orchestrator: MagicMock,
        three_accounts: InMemoryCookieStore,
    ) -> None:
        """Test one of three accounts is selected and refreshed."""
        scheduler = RefreshScheduler(orchestrator, three_accounts, threshold_hours=6)

        report = await scheduler.sweep()

        assert report.checked == 3
        assert report.selected == [SOON]
        orchestrator.login.assert_awaited_once_with(SOON)
        assert report.refreshed == 1
        assert report.results[0].message == f"Cookies refreshed successfully for {SOON}"

    async def test_failure_does_not_stop_sweep(
        self,
        orchestrator: MagicMock,
        three_accounts: InMemoryCookieStore,
    ) -> None:
        """Test an exception is recorded and last_sweep_at still advances."""
        orchestrator.login.side_effect = RuntimeError("browser crashed")
        scheduler = RefreshScheduler(orchestrator, three_accounts, threshold_hours=6)

        report = await scheduler.sweep()

        assert orchestrator.login.await_count == 1
        assert report.errors == {SOON: "browser crashed"}
        assert scheduler.last_sweep_at is not None
        assert report.finished_at == scheduler.last_sweep_at

    async def test_failing_account_does_not_skip_others(
        self,
        orchestrator: MagicMock,
        three_accounts: InMemoryCookieStore,
    ) -> None:
        """Test later accounts are still refreshed after one raises."""
        orchestrator.login.side_effect = [RuntimeError("boom"), outcome(), outcome()]
        scheduler = RefreshScheduler(orchestrator, three_accounts, threshold_hours=6)

        report = await scheduler.sweep(force=True)

        assert orchestrator.login.await_count == 3
        assert len(report.errors) == 1
        assert report.refreshed == 2

    async def test_unrepresentable_expiry_does_not_abort_sweep(
        self,
        orchestrator: MagicMock,
        store: InMemoryCookieStore,
    ) -> None:
        """Test a record with an out-of-range expiry is treated as invalid."""
        store.put_raw("broken", '[{"name": "a", "value": "v", "expires": 1e20}]')
        await seed(store, SOON, timedelta(hours=1))
        scheduler = RefreshScheduler(orchestrator, store, threshold_hours=6)

        report = await scheduler.sweep()

        assert report.checked == 2
        assert sorted(report.selected) == sorted(["broken", SOON])
        assert orchestrator.login.await_count == 2
        assert report.errors == {}
        assert report.refreshed == 2

    async def test_unreadable_record_does_not_abort_sweep(
        self,
        orchestrator: MagicMock,
    ) -> None:
        """Test a store read failure is isolated to its own account."""

        class FlakyStore(InMemoryCookieStore):
            async def load_raw(self, key: str) -> str | None:
                if key == "flaky":
                    raise CookieStoreError("permission denied")
                return await super().load_raw(key)

        flaky = FlakyStore()
        flaky.put_raw("flaky", "[]")
        await seed(flaky, SOON, timedelta(hours=1))
        scheduler = RefreshScheduler(orchestrator, flaky, threshold_hours=6)

        report = await scheduler.sweep()

        assert report.checked == 2
        assert report.errors == {"flaky": "permission denied"}
        assert [r.email for r in report.results] == [SOON]

    async def test_invalid_accounts_selected(
        self,
        orchestrator: MagicMock,
        store: InMemoryCookieStore,
    ) -> None:
        """Test expired and corrupt records are always selected."""
        await seed(store, SOON, timedelta(hours=-1))
        store.put_raw("broken_example_de", "{oops")
        scheduler = RefreshScheduler(orchestrator, store, threshold_hours=1)

        report = await scheduler.sweep()

        assert sorted(report.selected) == ["broken_example_de", SOON]

    async def test_unsuccessful_login_reported(
        self,
        orchestrator: MagicMock,
        three_accounts: InMemoryCookieStore,
    ) -> None:
        """Test a failed login outcome becomes an unsuccessful result."""
        orchestrator.login.return_value = outcome(succeeded=False)
        scheduler = RefreshScheduler(orchestrator, three_accounts, threshold_hours=6)

        report = await scheduler.sweep()

        [result] = report.results
        assert result.success is False
        assert result.message == "Failed to refresh cookies: Login failed"
        assert report.refreshed == 0

    async def test_stop_abandons_remaining_accounts(
        self,
        orchestrator: MagicMock,
        three_accounts: InMemoryCookieStore,
    ) -> None:
        """Test stopping mid-sweep finishes the current account and skips the rest."""
        scheduler = RefreshScheduler(orchestrator, three_accounts, threshold_hours=6)

        async def stop_then_succeed(_email: str) -> LoginAttemptOutcome:
            scheduler.stop()
            return outcome()

        orchestrator.login.side_effect = stop_then_succeed

        report = await scheduler.sweep(force=True)

        assert report.aborted is True
        assert orchestrator.login.await_count == 1
        assert len(report.results) == 1


class TestCheckRefreshNeeded:
    """Tests for check_refresh_needed()."""

    async def test_lists_accounts_in_window(
        self,
        orchestrator: MagicMock,
        three_accounts: InMemoryCookieStore,
    ) -> None:
        """Test the threshold can be widened per call."""
        scheduler = RefreshScheduler(orchestrator, three_accounts, threshold_hours=6)

        default = await scheduler.check_refresh_needed()
        wide = await scheduler.check_refresh_needed(threshold_hours=24 * 5)

        assert default == {"needs_refresh": True, "users": [SOON], "threshold_hours": 6}
        assert sorted(wide["users"]) == sorted([SOON, LATER])
        orchestrator.login.assert_not_awaited()

    async def test_nothing_due(
        self,
        orchestrator: MagicMock,
        store: InMemoryCookieStore,
    ) -> None:
        """Test needs_refresh is False when all accounts are fresh."""
        await seed(store, LATER, timedelta(days=3))
        scheduler = RefreshScheduler(orchestrator, store, threshold_hours=6)

        result = await scheduler.check_refresh_needed()

        assert result["needs_refresh"] is False
        assert result["users"] == []


class TestRefreshAccount:
    """Tests for refresh_account()."""

    async def test_reports_old_and_new_expiry(
        self,
        orchestrator: MagicMock,
        store: InMemoryCookieStore,
    ) -> None:
        """Test expiry before and after the login is reported."""
        await seed(store, SOON, timedelta(hours=1))
        scheduler = RefreshScheduler(orchestrator, store)

        async def relogin(email: str) -> LoginAttemptOutcome:
            await seed(store, email, timedelta(days=7))
            return outcome()

        orchestrator.login.side_effect = relogin

        result = await scheduler.refresh_account(SOON)

        assert result.success is True
        assert result.old_expiry is not None
        assert result.new_expiry is not None
        assert result.new_expiry - result.old_expiry > timedelta(days=6)
        assert result.to_dict()["outcome"]["path"] == "full_login"

    async def test_account_without_cookies(
        self,
        orchestrator: MagicMock,
        store: InMemoryCookieStore,
    ) -> None:
        """Test expiries are None when nothing was stored before or after."""
        scheduler = RefreshScheduler(orchestrator, store)

        result = await scheduler.refresh_account(SOON)

        assert result.old_expiry is None
        assert result.new_expiry is None


class TestTimer:
    """Tests for start()/stop()/status()."""

    @pytest.fixture
    def sleeper(self) -> ManualSleep:
        return ManualSleep()

    @pytest.fixture
    def scheduler(
        self,
        orchestrator: MagicMock,
        store: InMemoryCookieStore,
        sleeper: ManualSleep,
    ) -> RefreshScheduler:
        scheduler = RefreshScheduler(orchestrator, store, sleep=sleeper)
        scheduler.sweep = AsyncMock()  # type: ignore[method-assign]
        return scheduler

    async def test_start_twice_fires_one_tick(
        self,
        scheduler: RefreshScheduler,
        sleeper: ManualSleep,
    ) -> None:
        """Test a second start replaces the first timer."""
        scheduler.start(1)
        scheduler.start(2)
        await settle()

        assert [seconds for seconds, _ in sleeper.pending] == [7200]

        sleeper.fire()
        await settle()

        assert scheduler.sweep.await_count == 1
        scheduler.stop()
        await settle()

    async def test_ticks_repeat(
        self,
        scheduler: RefreshScheduler,
        sleeper: ManualSleep,
    ) -> None:
        """Test the timer keeps sweeping every interval."""
        scheduler.start(0.5)
        for _ in range(3):
            await settle()
            sleeper.fire()
        await settle()

        assert scheduler.sweep.await_count == 3
        scheduler.stop()
        await settle()

    async def test_sweep_error_keeps_timer_alive(
        self,
        scheduler: RefreshScheduler,
        sleeper: ManualSleep,
    ) -> None:
        """Test a failing sweep does not end the timer."""
        scheduler.sweep.side_effect = RuntimeError("boom")
        scheduler.start(1)
        await settle()
        sleeper.fire()
        await settle()

        assert scheduler.is_running is True
        assert len(sleeper.pending) == 1
        scheduler.stop()
        await settle()

    async def test_status(self, scheduler: RefreshScheduler) -> None:
        """Test status reflects the running timer."""
        started = scheduler.start(2)

        assert started.is_running is True
        assert started.interval_hours == 2

        await settle()
        next_sweep_at = scheduler.status().next_sweep_at
        assert next_sweep_at is not None
        assert next_sweep_at > datetime.now(timezone.utc) + timedelta(hours=1)

        stopped = scheduler.stop()
        await settle()

        assert stopped.is_running is False
        assert stopped.interval_hours is None
        assert stopped.next_sweep_at is None

    async def test_stop_is_idempotent(self, scheduler: RefreshScheduler) -> None:
        """Test stopping a stopped timer is harmless."""
        assert scheduler.stop().is_running is False
        assert scheduler.stop().is_running is False

    async def test_default_interval(self, scheduler: RefreshScheduler) -> None:
        """Test start without an interval uses the configured default."""
        assert scheduler.start().interval_hours == 12
        scheduler.stop()
        await settle()

    @pytest.mark.parametrize("interval", [0, -1])
    async def test_rejects_non_positive_interval(
        self,
        scheduler: RefreshScheduler,
        interval: float,
    ) -> None:
        """Test zero or negative intervals raise ValueError."""
        with pytest.raises(ValueError):
            scheduler.start(interval)
        assert scheduler.is_running is False
