"""
closing_services.trial_balance_query -- read path for trial balance reports.

Responsibility:
    Hand persisted snapshots to reporting consumers, filtered by account
    code/name substring and account type, with totals over exactly the
    returned rows.  Also derives HEADER account figures by summing their
    posting descendants.

Invariants enforced:
    - Read-only.
    - NO_SNAPSHOT (never closed or recalculated) is distinct from EMPTY
      (snapshot written with zero rows); a filter that matches nothing on
      an existing snapshot is AVAILABLE with no rows.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from closing_kernel.domain.balances import BalanceTotals
from closing_kernel.services.coa_registry import ChartOfAccountsRegistry
from closing_kernel.services.period_service import PeriodService
from closing_kernel.selectors.trial_balance_selector import TrialBalanceSelector
from closing_services._close_types import RollupRow, TrialBalanceStatus, TrialBalanceView


class TrialBalanceQueryService:

    def __init__(self, session: Session):
        self.session = session
        self._periods = PeriodService(session)
        self._snapshots = TrialBalanceSelector(session)
        self._coa = ChartOfAccountsRegistry(session)

    def get_trial_balance(
        self,
        period_id: UUID,
        search_text: str | None = None,
        account_type: str | None = None,
    ) -> TrialBalanceView:
        """
        Raises:
            PeriodNotFoundError: Unknown period.
        """
        period = self._periods.get_period(period_id)
        account_type = getattr(account_type, "value", account_type)

        if period.trial_balance_calculated_at is None:
            status = TrialBalanceStatus.NO_SNAPSHOT
            rows = []
        elif self._snapshots.count_rows(period_id) == 0:
            status = TrialBalanceStatus.EMPTY
            rows = []
        else:
            status = TrialBalanceStatus.AVAILABLE
            rows = self._snapshots.lines(period_id, search_text, account_type)

        return TrialBalanceView(
            period=period,
            status=status,
            rows=tuple(rows),
            totals=BalanceTotals.of(rows),
            search_text=search_text,
            account_type=account_type,
        )

    def get_rollup(self, period_id: UUID) -> list[RollupRow]:
        """One row per HEADER account, ordered by code."""
        self._periods.get_period(period_id)
        lines = {line.account_id: line for line in self._snapshots.lines(period_id)}

        return [
            RollupRow(
                account_id=header.id,
                account_code=header.code,
                account_name=header.name,
                account_type=header.account_type,
                descendant_count=len(descendants),
                totals=BalanceTotals.of(lines[d.id] for d in descendants if d.id in lines),
            )
            for header, descendants in self._coa.header_descendants()
        ]
