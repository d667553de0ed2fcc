"""
Per-period close lock.

Expected Behavior:
- Two runs on the same period never overlap: the second is rejected with
  PeriodCloseInProgressError (or PeriodAlreadyClosedError once the first
  has committed)
- A lock left behind by a crashed run is reclaimed after its TTL
- Runs on different periods never contend
- A close waits for an uncommitted posting into its period and includes it
"""

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier
from uuid import uuid4

import pytest

from closing_kernel.db.engine import session_scope
from closing_kernel.domain.dtos import LineSpec
from closing_kernel.exceptions import PeriodAlreadyClosedError, PeriodCloseInProgressError
from closing_kernel.services.ledger_service import LedgerService
from closing_services.period_lock import PeriodCloseLockManager

pytestmark = pytest.mark.slow_locks


@pytest.fixture
def lock_manager(session_factory, deterministic_clock):
    return PeriodCloseLockManager(session_factory, deterministic_clock, ttl_seconds=900)


class TestLockManager:

    def test_second_acquire_rejected(self, lock_manager, january, test_actor_id):
        first, second = uuid4(), uuid4()
        lock_manager.acquire(january.id, january.period_code, first, test_actor_id, "close")

        with pytest.raises(PeriodCloseInProgressError) as exc_info:
            lock_manager.acquire(january.id, january.period_code, second, test_actor_id, "close")

        assert exc_info.value.holder_run_id == str(first)
        assert lock_manager.holder(january.id) == first

    def test_release_only_removes_own_lock(self, lock_manager, january, test_actor_id):
        run_id = uuid4()
        lock_manager.acquire(january.id, january.period_code, run_id, test_actor_id, "close")

        assert lock_manager.release(january.id, uuid4()) is False
        assert lock_manager.holder(january.id) == run_id
        assert lock_manager.release(january.id, run_id) is True
        assert lock_manager.holder(january.id) is None

    def test_hold_releases_on_error(self, lock_manager, january, test_actor_id):
        with pytest.raises(KeyError):
            with lock_manager.hold(january.id, january.period_code, uuid4(), test_actor_id, "close"):
                raise KeyError("boom")
        assert lock_manager.holder(january.id) is None

    def test_expired_lock_reclaimed(self, lock_manager, january, test_actor_id, deterministic_clock):
        stale = uuid4()
        lock_manager.acquire(january.id, january.period_code, stale, test_actor_id, "close")

        deterministic_clock.advance(901)
        fresh = uuid4()
        lock_manager.acquire(january.id, january.period_code, fresh, test_actor_id, "close")
        assert lock_manager.holder(january.id) == fresh

    def test_concurrent_acquire_has_one_winner(
        self, lock_manager, january, test_actor_id
    ):
        workers = 4
        barrier = Barrier(workers)

        def attempt(_):
            barrier.wait()
            try:
                lock_manager.acquire(
                    january.id, january.period_code, uuid4(), test_actor_id, "close"
                )
                return "acquired"
            except PeriodCloseInProgressError:
                return "rejected"

        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(attempt, range(workers)))

        assert outcomes.count("acquired") == 1
        assert outcomes.count("rejected") == workers - 1


class TestCloseUnderLock:

    def test_close_rejected_while_locked(
        self, closing_service, lock_manager, january_ledger, test_actor_id
    ):
        holder = uuid4()
        lock_manager.acquire(
            january_ledger.id, january_ledger.period_code, holder, test_actor_id, "recalculate"
        )

        with pytest.raises(PeriodCloseInProgressError) as exc_info:
            closing_service.close_period(january_ledger.id, test_actor_id)
        assert exc_info.value.holder_run_id == str(holder)

        with pytest.raises(PeriodCloseInProgressError):
            closing_service.recalculate_trial_balance(january_ledger.id, test_actor_id)

        # The rejected runs must not have released someone else's lock.
        assert lock_manager.holder(january_ledger.id) == holder

    def test_close_reclaims_stale_lock(
        self, closing_service, lock_manager, january_ledger, test_actor_id, deterministic_clock
    ):
        lock_manager.acquire(
            january_ledger.id, january_ledger.period_code, uuid4(), test_actor_id, "close"
        )
        deterministic_clock.advance(901)

        result = closing_service.close_period(january_ledger.id, test_actor_id)
        assert result.period.is_closed
        assert lock_manager.holder(january_ledger.id) is None

    def test_other_period_does_not_contend(
        self, closing_service, lock_manager, january_ledger, february, test_actor_id
    ):
        lock_manager.acquire(
            january_ledger.id, january_ledger.period_code, uuid4(), test_actor_id, "close"
        )
        result = closing_service.recalculate_trial_balance(february.id, test_actor_id)
        assert result.period.period_code == "2025-02"

    def test_lock_released_after_close(self, closing_service, lock_manager, january_ledger, test_actor_id):
        closing_service.close_period(january_ledger.id, test_actor_id)
        assert lock_manager.holder(january_ledger.id) is None


@pytest.mark.postgres
@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL", "").startswith("postgresql"),
    reason="concurrent close transactions need a server database",
)
class TestConcurrentClose:

    def test_exactly_one_close_succeeds(
        self, closing_service, january_ledger, post_entry, test_actor_id
    ):
        post_entry(date(2025, 1, 29), [("5100", "1000", 0), ("1100", 0, "1000")])
        workers = 5
        barrier = Barrier(workers)

        def attempt(_):
            barrier.wait()
            try:
                closing_service.close_period(january_ledger.id, test_actor_id)
                return "closed"
            except (PeriodCloseInProgressError, PeriodAlreadyClosedError):
                return "rejected"

        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(attempt, range(workers)))

        assert outcomes.count("closed") == 1
        assert outcomes.count("rejected") == workers - 1

        view = closing_service.get_trial_balance(january_ledger.id)
        assert len(view.rows) == 7
        assert view.period.is_closed

    def test_close_waits_for_uncommitted_posting(
        self, closing_service, session_factory, january_ledger, deterministic_clock, test_actor_id
    ):
        lines = [
            LineSpec(account_code="5100", debit=Decimal("1000"), credit=Decimal("0")),
            LineSpec(account_code="1100", debit=Decimal("0"), credit=Decimal("1000")),
        ]
        with ThreadPoolExecutor(max_workers=1) as pool:
            with session_scope(session_factory) as session:
                LedgerService(session, deterministic_clock).record_entry(
                    "JE-RACE", date(2025, 1, 31), lines, test_actor_id, "IDR"
                )
                close = pool.submit(closing_service.close_period, january_ledger.id, test_actor_id)
                with pytest.raises(TimeoutError):
                    close.result(timeout=1)

            result = close.result(timeout=30)

        assert result.period.is_closed
        rows = {r.account_code: r for r in closing_service.get_trial_balance(january_ledger.id).rows}
        assert rows["5100"].ending_debit == Decimal("1000")
