"""
Module: closing_kernel.selectors.ledger_selector
Responsibility: Read-only aggregation over POSTED journal lines -- the Ledger
    Store interface every closing computation derives its figures from.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only lines of POSTED entries are summed.
    - Date ranges are inclusive on both ends and filter on the entry's
      transaction_date.
    - All sums are returned as Decimal quantized to the storage scale.

Audit relevance:
    The period validator, the balance aggregator and the recalculation run
    all read through this selector, so a snapshot can always be re-derived
    from the ledger of record.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from closing_kernel.domain.balances import DebitCredit, quantize_amount
from closing_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from closing_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """
    Selector for posted ledger movements.

    Guarantees:
        - Results are plain DebitCredit values (never ORM rows, never float).
        - An account or range without posted lines yields zero, not None.
    """

    def _posted_in_range(self, query, start: date, end: date, currency: str | None):
        query = (
            query.join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status == JournalEntryStatus.POSTED.value)
            .where(JournalEntry.transaction_date >= start)
            .where(JournalEntry.transaction_date <= end)
        )
        if currency is not None:
            query = query.where(JournalEntry.currency == currency)
        return query

    @staticmethod
    def _pair(debit, credit) -> DebitCredit:
        return DebitCredit(quantize_amount(debit), quantize_amount(credit))

    def sum_posted_amounts(
        self,
        account_id: UUID,
        start: date,
        end: date,
        currency: str | None = None,
    ) -> DebitCredit:
        """Posted debit and credit totals of one account inside [start, end]."""
        query = select(
            func.coalesce(func.sum(JournalLine.debit_amount), 0),
            func.coalesce(func.sum(JournalLine.credit_amount), 0),
        ).where(JournalLine.account_id == account_id)
        query = self._posted_in_range(query, start, end, currency)
        debit, credit = self.session.execute(query).one()
        return self._pair(debit, credit)

    def posted_movements(
        self,
        start: date,
        end: date,
        currency: str | None = None,
        account_ids: list[UUID] | None = None,
    ) -> dict[UUID, DebitCredit]:
        """
        Posted totals per account inside [start, end].

        Accounts without posted lines in the range are absent from the
        result; callers treat a missing key as zero movement.
        """
        query = select(
            JournalLine.account_id,
            func.sum(JournalLine.debit_amount).label("debit_total"),
            func.sum(JournalLine.credit_amount).label("credit_total"),
        )
        query = self._posted_in_range(query, start, end, currency)
        if account_ids is not None:
            query = query.where(JournalLine.account_id.in_(account_ids))
        query = query.group_by(JournalLine.account_id)

        return {
            row.account_id: self._pair(row.debit_total, row.credit_total)
            for row in self.session.execute(query).all()
        }

    def total_posted(
        self,
        start: date,
        end: date,
        currency: str | None = None,
    ) -> DebitCredit:
        """Posted debit and credit totals across every account inside [start, end]."""
        query = select(
            func.coalesce(func.sum(JournalLine.debit_amount), 0),
            func.coalesce(func.sum(JournalLine.credit_amount), 0),
        )
        query = self._posted_in_range(query, start, end, currency)
        debit, credit = self.session.execute(query).one()
        return self._pair(debit, credit)

    def count_entries(
        self,
        start: date,
        end: date,
        status: JournalEntryStatus | str = JournalEntryStatus.DRAFT,
    ) -> int:
        """Number of journal entries with the given status dated inside [start, end]."""
        query = (
            select(func.count(JournalEntry.id))
            .where(JournalEntry.status == JournalEntryStatus(status).value)
            .where(JournalEntry.transaction_date >= start)
            .where(JournalEntry.transaction_date <= end)
        )
        return int(self.session.execute(query).scalar_one())
