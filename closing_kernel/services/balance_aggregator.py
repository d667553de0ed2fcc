"""
BalanceAggregator -- the four balance horizons per posting account.

Responsibility:
    For one period, compute per POSTING account the opening, period
    movement, ending and year-to-date debit/credit figures from POSTED
    ledger lines and the prior period's ending balances.

Architecture position:
    Kernel > Services -- imperative shell around the pure
    ``domain.balances`` core.  Reads only; the snapshot is written by
    TrialBalanceWriter under the caller's transaction.

Algorithm:
    1. opening  = ending of the prior chronological period (zero if none).
       A CLOSED prior period with a snapshot supplies its snapshot figures;
       otherwise the prior ending is re-derived from the ledger by walking
       back along the period chain to the nearest closed snapshot (or the
       first period) and rolling forward.
    2. movement = POSTED lines dated inside the period.
    3. ending   = normalize(opening + movement) against the normal balance.
    4. ytd      = normalize(opening of the fiscal year's first period +
       POSTED lines from that period's start through this period's end).
       Re-derived from ledger lines every time, never chained from the
       prior period's ytd.

Invariants enforced:
    - HEADER accounts never get a row.
    - ending and ytd have at most one non-zero side.
    - Same ledger state -> identical result (quantized Decimals, accounts
      ordered by code).

Failure modes:
    - PeriodNotFoundError: unknown period.
    - AccountNotFoundError / AccountNotPostingError: bad explicit account ids.
    - CloseCancelledError: the cancellation token fired.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from closing_kernel.domain.balances import BalanceRow, DebitCredit, compute_balance_row, normalize_position
from closing_kernel.domain.cancellation import CancellationToken
from closing_kernel.domain.dtos import AccountInfo, PeriodInfo
from closing_kernel.logging_config import get_logger
from closing_kernel.selectors.ledger_selector import LedgerSelector
from closing_kernel.selectors.trial_balance_selector import TrialBalanceSelector
from closing_kernel.services.coa_registry import ChartOfAccountsRegistry
from closing_kernel.services.period_service import PeriodService

logger = get_logger("services.balance_aggregator")

_ZERO = DebitCredit()

Positions = dict[UUID, DebitCredit]


class BalanceAggregator:
    """
    Computes trial balance rows for a period.

    Contract:
        ``compute(period_id)`` returns ``{account_id: BalanceRow}`` ordered by
        account code.  No writes.
    """

    def __init__(
        self,
        session: Session,
        currency: str,
        period_service: PeriodService | None = None,
        coa: ChartOfAccountsRegistry | None = None,
    ):
        self.session = session
        self._currency = currency
        self._periods = period_service or PeriodService(session)
        self._coa = coa or ChartOfAccountsRegistry(session)
        self._ledger = LedgerSelector(session)
        self._snapshots = TrialBalanceSelector(session)

    def compute(
        self,
        period_id: UUID,
        account_ids: Iterable[UUID] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> dict[UUID, BalanceRow]:
        period = self._periods.get_period(period_id)
        accounts = self._resolve_accounts(account_ids)
        normal = {a.id: a.normal_balance for a in accounts}
        id_filter = None if account_ids is None else list(normal)
        cache: dict[UUID, Positions] = {}

        opening = self._opening_of(period, normal, id_filter, cache, cancel_token)
        movement = self._ledger.posted_movements(
            period.start_date, period.end_date, self._currency, id_filter
        )

        fiscal_periods = self._periods.fiscal_year_periods_through(period.id)
        first = fiscal_periods[0]
        if first.id == period.id:
            fy_opening, fy_movement = opening, movement
        else:
            fy_opening = self._opening_of(first, normal, id_filter, cache, cancel_token)
            fy_movement = self._ledger.posted_movements(
                first.start_date, period.end_date, self._currency, id_filter
            )

        rows: dict[UUID, BalanceRow] = {}
        for account in accounts:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(period.period_code)
            rows[account.id] = compute_balance_row(
                account_id=account.id,
                account_code=account.code,
                normal_balance=account.normal_balance,
                opening=opening.get(account.id, _ZERO),
                movement=movement.get(account.id, _ZERO),
                fiscal_year_opening=fy_opening.get(account.id, _ZERO),
                fiscal_year_movement=fy_movement.get(account.id, _ZERO),
                currency=self._currency,
            )

        logger.info(
            "balances_computed",
            extra={
                "period_code": period.period_code,
                "account_count": len(rows),
                "fiscal_year_start_period": first.period_code,
            },
        )
        return rows

    def _resolve_accounts(self, account_ids: Iterable[UUID] | None) -> list[AccountInfo]:
        if account_ids is None:
            return self._coa.posting_accounts(include_inactive=True)
        accounts = [self._coa.require_posting(account_id) for account_id in account_ids]
        return sorted(accounts, key=lambda a: a.code)

    def _opening_of(
        self,
        period: PeriodInfo,
        normal: dict[UUID, str],
        id_filter: list[UUID] | None,
        cache: dict[UUID, Positions],
        cancel_token: CancellationToken | None,
    ) -> Positions:
        previous = self._periods.get_previous_period(period.id)
        if previous is None:
            return {}
        return self._ending_of(previous, normal, id_filter, cache, cancel_token)

    def _ending_of(
        self,
        period: PeriodInfo,
        normal: dict[UUID, str],
        id_filter: list[UUID] | None,
        cache: dict[UUID, Positions],
        cancel_token: CancellationToken | None,
    ) -> Positions:
        """Ending positions of ``period``, from its snapshot or re-derived."""
        chain: list[PeriodInfo] = []
        cursor: PeriodInfo | None = period
        base: Positions = {}
        while cursor is not None:
            if cursor.id in cache:
                base = cache[cursor.id]
                break
            if cursor.is_closed and cursor.trial_balance_calculated_at is not None:
                base = self._snapshots.ending_by_account(cursor.id)
                cache[cursor.id] = base
                break
            chain.append(cursor)
            cursor = self._periods.get_previous_period(cursor.id)

        for link in reversed(chain):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(period.period_code)
            movement = self._ledger.posted_movements(
                link.start_date, link.end_date, self._currency, id_filter
            )
            ending = {
                account_id: normalize_position(
                    base.get(account_id, _ZERO) + movement.get(account_id, _ZERO),
                    normal_balance,
                )
                for account_id, normal_balance in normal.items()
            }
            cache[link.id] = ending
            base = ending

        if chain:
            logger.debug(
                "prior_ending_rederived",
                extra={
                    "period_code": period.period_code,
                    "periods_walked": len(chain),
                },
            )
        return base
