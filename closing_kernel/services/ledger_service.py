"""
LedgerService -- records and posts journal entries into the Ledger Store.

Responsibility:
    Builds journal entries from LineSpecs, validates each line, and performs
    the one-way DRAFT -> POSTED transition once the entry balances and its
    transaction date lands in an OPEN period.

Architecture position:
    Kernel > Services -- imperative shell.  The write side of the ledger
    that the closing engine reads through LedgerSelector.

Invariants enforced:
    - Each line has non-negative debit and credit with exactly one non-zero.
    - Lines target POSTING, active accounts only.
    - sum(debit) == sum(credit) per entry before posting.
    - No posting into a closed period (via PeriodService).
    - Posted entries are append-only (db/immutability.py listeners).

Failure modes:
    - InvalidLineError, AccountNotFoundError, AccountNotPostingError,
      AccountInactiveError on malformed lines.
    - UnbalancedEntryError, PeriodNotFoundError, ClosedPeriodError,
      EntryAlreadyPostedError when posting.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from closing_kernel.domain.balances import ZERO, format_amount, quantize_amount
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.domain.dtos import JournalEntryInfo, LineSpec
from closing_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountNotPostingError,
    EntryAlreadyPostedError,
    EntryNotFoundError,
    InvalidLineError,
    UnbalancedEntryError,
)
from closing_kernel.logging_config import get_logger
from closing_kernel.models.account import Account
from closing_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from closing_kernel.services.base import BaseService
from closing_kernel.services.period_service import PeriodService

logger = get_logger("services.ledger")


class LedgerService(BaseService[JournalEntry]):
    """
    Write path of the Ledger Store.

    Contract:
        ``record_entry`` persists a DRAFT entry (and posts it when asked);
        ``post_entry`` posts an existing DRAFT.  Both flush only.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        period_service: PeriodService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._periods = period_service or PeriodService(session, self._clock)

    def record_entry(
        self,
        entry_number: str,
        transaction_date: date,
        lines: list[LineSpec],
        actor_id: UUID,
        currency: str,
        description: str | None = None,
        reference: str | None = None,
        post: bool = True,
    ) -> JournalEntryInfo:
        """
        Record a journal entry, posting it unless ``post`` is False.

        Raises:
            InvalidLineError: No lines, or a line with bad amounts.
            AccountNotFoundError / AccountNotPostingError / AccountInactiveError:
                A line targets an unusable account.
        """
        if not lines:
            raise InvalidLineError(0, "a journal entry needs at least one line")

        entry = JournalEntry(
            entry_number=entry_number,
            transaction_date=transaction_date,
            description=description,
            reference=reference,
            currency=currency,
            status=JournalEntryStatus.DRAFT.value,
            created_by_id=actor_id,
        )
        for number, spec in enumerate(lines, start=1):
            account = self._resolve_line_account(number, spec.account_code)
            debit, credit = self._validate_amounts(number, spec)
            entry.lines.append(
                JournalLine(
                    account_id=account.id,
                    line_number=number,
                    debit_amount=debit,
                    credit_amount=credit,
                    description=spec.description,
                    created_by_id=actor_id,
                )
            )

        self.session.add(entry)
        self.session.flush()

        logger.info(
            "journal_entry_recorded",
            extra={
                "entry_number": entry_number,
                "transaction_date": str(transaction_date),
                "line_count": len(lines),
            },
        )

        if post:
            return self.post_entry(entry.id, actor_id)
        return self._to_dto(entry)

    def post_entry(self, entry_id: UUID, actor_id: UUID) -> JournalEntryInfo:
        """
        Transition a DRAFT entry to POSTED.

        Raises:
            EntryNotFoundError: Unknown entry.
            EntryAlreadyPostedError: The entry is already posted.
            UnbalancedEntryError: Debits differ from credits.
            PeriodNotFoundError / ClosedPeriodError: No open period covers
                the transaction date.
        """
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.id == entry_id).with_for_update()
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        if entry.is_posted:
            raise EntryAlreadyPostedError(entry.entry_number)

        debits = quantize_amount(entry.total_debit)
        credits = quantize_amount(entry.total_credit)
        if debits != credits:
            logger.warning(
                "unbalanced_entry_rejected",
                extra={
                    "entry_number": entry.entry_number,
                    "debits": format_amount(debits),
                    "credits": format_amount(credits),
                },
            )
            raise UnbalancedEntryError(entry.entry_number, str(debits), str(credits))

        period = self._periods.validate_posting_date(entry.transaction_date)

        entry.status = JournalEntryStatus.POSTED.value
        entry.posted_at = self._clock.now()
        entry.posted_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_number": entry.entry_number,
                "period_code": period.period_code,
                "total_debit": format_amount(debits),
            },
        )
        return self._to_dto(entry)

    def _resolve_line_account(self, line_number: int, account_code: str) -> Account:
        account = self.session.execute(
            select(Account).where(Account.code == account_code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_code)
        if not account.is_posting:
            raise AccountNotPostingError(account_code)
        if not account.is_active:
            raise AccountInactiveError(account_code)
        return account

    @staticmethod
    def _validate_amounts(line_number: int, spec: LineSpec) -> tuple[Decimal, Decimal]:
        debit = Decimal(spec.debit or ZERO)
        credit = Decimal(spec.credit or ZERO)
        if debit < 0 or credit < 0:
            raise InvalidLineError(line_number, "amounts must be non-negative")
        if (debit == 0) == (credit == 0):
            raise InvalidLineError(line_number, "exactly one of debit or credit must be non-zero")
        return debit, credit

    @staticmethod
    def _to_dto(entry: JournalEntry) -> JournalEntryInfo:
        return JournalEntryInfo(
            id=entry.id,
            entry_number=entry.entry_number,
            transaction_date=entry.transaction_date,
            currency=entry.currency,
            status=str(getattr(entry.status, "value", entry.status)),
            total_debit=quantize_amount(entry.total_debit),
            total_credit=quantize_amount(entry.total_credit),
            line_count=len(entry.lines),
            posted_at=entry.posted_at,
        )
