"""
Module: closing_kernel.selectors.trial_balance_selector
Responsibility: Read access to persisted trial balance snapshots.
Architecture position: Kernel > Selectors.

Audit relevance:
    Snapshot rows of a CLOSED period are the carried-forward opening figures
    of its successor; the aggregator reads them through ``ending_by_account``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from closing_kernel.domain.balances import DebitCredit, format_amount
from closing_kernel.models.account import Account
from closing_kernel.models.trial_balance import TrialBalance
from closing_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceLine:
    """One snapshot row joined with its account."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    parent_id: UUID | None
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    ending_debit: Decimal
    ending_credit: Decimal
    ytd_debit: Decimal
    ytd_credit: Decimal
    currency: str
    calculated_at: datetime

    def to_dict(self) -> dict:
        return {
            "account_id": str(self.account_id),
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "opening_debit": format_amount(self.opening_debit),
            "opening_credit": format_amount(self.opening_credit),
            "period_debit": format_amount(self.period_debit),
            "period_credit": format_amount(self.period_credit),
            "ending_debit": format_amount(self.ending_debit),
            "ending_credit": format_amount(self.ending_credit),
            "ytd_debit": format_amount(self.ytd_debit),
            "ytd_credit": format_amount(self.ytd_credit),
            "currency": self.currency,
        }


class TrialBalanceSelector(BaseSelector):
    """Selector over the ``trial_balances`` snapshot table."""

    def count_rows(self, period_id: UUID) -> int:
        return int(
            self.session.execute(
                select(func.count(TrialBalance.id)).where(TrialBalance.period_id == period_id)
            ).scalar_one()
        )

    def ending_by_account(self, period_id: UUID) -> dict[UUID, DebitCredit]:
        """Ending position of every account in the period's snapshot."""
        rows = self.session.execute(
            select(
                TrialBalance.account_id,
                TrialBalance.ending_debit,
                TrialBalance.ending_credit,
            ).where(TrialBalance.period_id == period_id)
        ).all()
        return {
            row.account_id: DebitCredit(row.ending_debit, row.ending_credit)
            for row in rows
        }

    def lines(
        self,
        period_id: UUID,
        search_text: str | None = None,
        account_type: str | None = None,
    ) -> list[TrialBalanceLine]:
        """
        Snapshot rows of a period ordered by account code.

        Args:
            search_text: Case-insensitive substring matched against the
                account code or name.
            account_type: Exact account type value (e.g. "asset").
        """
        query = (
            select(TrialBalance, Account)
            .join(Account, TrialBalance.account_id == Account.id)
            .where(TrialBalance.period_id == period_id)
        )
        if search_text:
            needle = search_text.lower()
            query = query.where(
                or_(
                    func.lower(Account.code).contains(needle, autoescape=True),
                    func.lower(Account.name).contains(needle, autoescape=True),
                )
            )
        if account_type:
            query = query.where(Account.account_type == str(getattr(account_type, "value", account_type)))
        query = query.order_by(Account.code)

        result = []
        for snapshot, account in self.session.execute(query).all():
            result.append(
                TrialBalanceLine(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=str(getattr(account.account_type, "value", account.account_type)),
                    normal_balance=str(getattr(account.normal_balance, "value", account.normal_balance)),
                    parent_id=account.parent_id,
                    opening_debit=snapshot.opening_debit,
                    opening_credit=snapshot.opening_credit,
                    period_debit=snapshot.period_debit,
                    period_credit=snapshot.period_credit,
                    ending_debit=snapshot.ending_debit,
                    ending_credit=snapshot.ending_credit,
                    ytd_debit=snapshot.ytd_debit,
                    ytd_credit=snapshot.ytd_credit,
                    currency=snapshot.currency,
                    calculated_at=snapshot.calculated_at,
                )
            )
        return result
