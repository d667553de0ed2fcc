"""
Tests for BalanceAggregator.

Verifies:
- Opening/period/ending/YTD per POSTING account, HEADER accounts excluded
- Opening carried from a CLOSED snapshot, or re-derived along the chain
- YTD re-derived from ledger lines, never chained
- Determinism and cooperative cancellation
"""

from datetime import date
from decimal import Decimal

import pytest

from closing_kernel.domain.balances import BalanceTotals
from closing_kernel.domain.cancellation import CancellationToken
from closing_kernel.exceptions import AccountNotPostingError, CloseCancelledError
from closing_kernel.services.balance_aggregator import BalanceAggregator
from closing_kernel.services.period_service import PeriodService
from closing_kernel.services.trial_balance_writer import TrialBalanceWriter


@pytest.fixture
def aggregator(session):
    return BalanceAggregator(session, "IDR")


def _by_code(rows):
    return {row.account_code: row for row in rows.values()}


class TestSinglePeriod:

    def test_january_rows(self, aggregator, january_ledger):
        rows = _by_code(aggregator.compute(january_ledger.id))

        assert list(rows) == ["1100", "1200", "2100", "3100", "4100", "5100", "6100"]

        cash = rows["1100"]
        assert cash.opening_debit == 0 and cash.opening_credit == 0
        assert cash.period_debit == Decimal("10000000")
        assert cash.period_credit == Decimal("750000")
        assert cash.ending_debit == Decimal("9250000")
        assert cash.ending_credit == 0
        assert cash.ytd_debit == Decimal("9250000")

        assert rows["3100"].ending_credit == Decimal("10000000")
        assert rows["4100"].ending_credit == Decimal("2500000")
        assert rows["6100"].ending_debit == Decimal("750000")

    def test_accounts_without_activity_get_zero_rows(self, aggregator, january_ledger):
        payable = _by_code(aggregator.compute(january_ledger.id))["2100"]
        assert payable.ending_debit == 0 and payable.ending_credit == 0

    def test_totals_balance(self, aggregator, january_ledger):
        totals = BalanceTotals.of(aggregator.compute(january_ledger.id).values())
        assert totals.period_debit == totals.period_credit == Decimal("13250000")
        assert totals.ending_debit == totals.ending_credit == Decimal("12500000")

    def test_deterministic(self, aggregator, january_ledger):
        first = aggregator.compute(january_ledger.id)
        second = aggregator.compute(january_ledger.id)
        assert first == second
        assert [str(r.ending_debit) for r in first.values()] == [
            str(r.ending_debit) for r in second.values()
        ]

    def test_inactive_accounts_keep_their_row(
        self, session, aggregator, january_ledger, test_actor_id
    ):
        from closing_kernel.services.coa_registry import ChartOfAccountsRegistry

        ChartOfAccountsRegistry(session).deactivate_account("1200", test_actor_id)
        rows = _by_code(aggregator.compute(january_ledger.id))
        assert rows["1200"].ending_debit == Decimal("2500000")

    def test_explicit_account_subset(self, aggregator, january_ledger, standard_accounts):
        rows = aggregator.compute(
            january_ledger.id,
            account_ids=[standard_accounts["4100"].id, standard_accounts["1100"].id],
        )
        assert [r.account_code for r in rows.values()] == ["1100", "4100"]

    def test_header_account_rejected(self, aggregator, january_ledger, standard_accounts):
        with pytest.raises(AccountNotPostingError):
            aggregator.compute(january_ledger.id, account_ids=[standard_accounts["1000"].id])

    def test_cancellation(self, aggregator, january_ledger):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(CloseCancelledError):
            aggregator.compute(january_ledger.id, cancel_token=token)


class TestCarryForward:

    def test_opening_rederived_from_open_predecessor(
        self, aggregator, january_ledger, february, post_entry
    ):
        post_entry(date(2025, 2, 10), [("1100", "1000000", 0), ("4100", 0, "1000000")])

        rows = _by_code(aggregator.compute(february.id))
        cash = rows["1100"]
        assert cash.opening_debit == Decimal("9250000")
        assert cash.period_debit == Decimal("1000000")
        assert cash.ending_debit == Decimal("10250000")
        assert cash.ytd_debit == Decimal("10250000")

        revenue = rows["4100"]
        assert revenue.opening_credit == Decimal("2500000")
        assert revenue.ending_credit == Decimal("3500000")
        assert revenue.ytd_credit == Decimal("3500000")

    def test_opening_read_from_closed_snapshot(
        self, session, aggregator, january_ledger, february, insert_raw_entry,
        test_actor_id, deterministic_clock,
    ):
        """
        Once a period is CLOSED its snapshot is authoritative for the
        successor's opening, while YTD is still re-derived from the ledger.
        """
        TrialBalanceWriter(session, deterministic_clock).replace_snapshot(
            january_ledger.id, aggregator.compute(january_ledger.id)
        )
        PeriodService(session).mark_closed(january_ledger.id, test_actor_id)

        # A line lands in January behind the guard's back.
        insert_raw_entry(date(2025, 1, 15), [("1100", "1", 0), ("4100", 0, "1")], session)

        cash = _by_code(aggregator.compute(february.id))["1100"]
        assert cash.opening_debit == Decimal("9250000")
        assert cash.ytd_debit == Decimal("9250001")

    def test_chain_walks_several_open_periods(
        self, aggregator, january_ledger, february, create_period, post_entry
    ):
        march = create_period("2025-03", date(2025, 3, 1), date(2025, 3, 31))
        post_entry(date(2025, 2, 10), [("6100", "50000", 0), ("1100", 0, "50000")])
        post_entry(date(2025, 3, 10), [("6100", "25000", 0), ("1100", 0, "25000")])

        expense = _by_code(aggregator.compute(march.id))["6100"]
        assert expense.opening_debit == Decimal("800000")
        assert expense.ending_debit == Decimal("825000")

    def test_first_period_has_zero_opening(self, aggregator, january_ledger):
        rows = aggregator.compute(january_ledger.id)
        assert all(r.opening_debit == 0 and r.opening_credit == 0 for r in rows.values())

    def test_ending_flips_side_when_balance_crosses_zero(
        self, aggregator, january_ledger, february, post_entry
    ):
        post_entry(date(2025, 2, 3), [("2100", "400000", 0), ("1100", 0, "400000")])
        payable = _by_code(aggregator.compute(february.id))["2100"]
        assert payable.ending_credit == 0
        assert payable.ending_debit == Decimal("400000")


class TestYearToDate:

    def test_fiscal_year_opening_carries_prior_year(
        self, aggregator, standard_accounts, create_period, post_entry
    ):
        december = create_period("2024-12", date(2024, 12, 1), date(2024, 12, 31))
        january = create_period("2025-01", date(2025, 1, 1), date(2025, 1, 31))
        february = create_period("2025-02", date(2025, 2, 1), date(2025, 2, 28))
        post_entry(date(2024, 12, 15), [("1100", "300", 0), ("3100", 0, "300")])
        post_entry(date(2025, 1, 15), [("1100", "200", 0), ("4100", 0, "200")])
        post_entry(date(2025, 2, 15), [("1100", "100", 0), ("4100", 0, "100")])

        assert december.fiscal_year == 2024
        cash_jan = _by_code(aggregator.compute(january.id))["1100"]
        assert cash_jan.opening_debit == Decimal("300")
        assert cash_jan.ytd_debit == Decimal("500")

        rows_feb = _by_code(aggregator.compute(february.id))
        assert rows_feb["1100"].ytd_debit == Decimal("600")
        assert rows_feb["4100"].ytd_credit == Decimal("300")
        assert rows_feb["4100"].period_credit == Decimal("100")
