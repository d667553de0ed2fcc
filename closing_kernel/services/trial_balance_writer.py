"""
TrialBalanceWriter -- replace-if-exists persistence of a period snapshot.

Deletes the period's existing trial balance rows and inserts the new ones
in the caller's transaction, then stamps the period as calculated.  Keyed
by (period, account), so rerunning never duplicates rows.  Flush-only: the
closer or recalculation decides whether the replacement commits.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.orm import Session

from closing_kernel.domain.balances import BalanceRow
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.logging_config import get_logger
from closing_kernel.models.accounting_period import AccountingPeriod
from closing_kernel.models.trial_balance import TrialBalance
from closing_kernel.services.base import BaseService

logger = get_logger("services.trial_balance_writer")


class TrialBalanceWriter(BaseService[TrialBalance]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def replace_snapshot(
        self,
        period_id: UUID,
        rows: dict[UUID, BalanceRow],
        calculated_at: datetime | None = None,
    ) -> int:
        """Replace the snapshot of ``period_id`` with ``rows``.  Returns the row count."""
        calculated_at = calculated_at or self._clock.now()

        deleted = self.session.execute(
            delete(TrialBalance).where(TrialBalance.period_id == period_id)
        ).rowcount

        self.session.add_all(
            TrialBalance(
                period_id=period_id,
                account_id=row.account_id,
                opening_debit=row.opening_debit,
                opening_credit=row.opening_credit,
                period_debit=row.period_debit,
                period_credit=row.period_credit,
                ending_debit=row.ending_debit,
                ending_credit=row.ending_credit,
                ytd_debit=row.ytd_debit,
                ytd_credit=row.ytd_credit,
                currency=row.currency,
                calculated_at=calculated_at,
            )
            for row in rows.values()
        )

        period = self.session.get(AccountingPeriod, period_id)
        period.trial_balance_calculated_at = calculated_at
        self.session.flush()

        logger.info(
            "trial_balance_replaced",
            extra={
                "period_id": str(period_id),
                "rows_deleted": deleted,
                "rows_written": len(rows),
            },
        )
        return len(rows)
