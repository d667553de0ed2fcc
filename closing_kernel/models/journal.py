"""
Module: closing_kernel.models.journal
Responsibility: ORM persistence for journal entries and their ledger lines --
    the ledger of record every closing computation derives from.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - entry_number is unique (uq_journal_entry_number).
    - Each line carries non-negative debit_amount and credit_amount with
      exactly one non-zero (LedgerService).
    - sum(debit) == sum(credit) per entry (LedgerService at posting).
    - Posted entries and their lines are append-only (db/immutability.py).

Audit relevance:
    Only lines of POSTED entries participate in validation and aggregation.
    DRAFT entries are counted as blocking documents by the period validator.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from closing_kernel.db.base import AMOUNT_SCALE, TrackedBase, UUIDString


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: Transitions are one-way: DRAFT -> POSTED.
    """

    DRAFT = "draft"
    POSTED = "posted"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Once status transitions to POSTED the row and all child lines
        become immutable.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        Index("idx_journal_transaction_date", "transaction_date"),
        Index("idx_journal_status", "status"),
    )

    entry_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Accounting date (drives period assignment)
    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Source document reference (e.g. invoice number)
    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Functional currency of the amounts on every line
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        order_by="JournalLine.line_number",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number}: {self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))


class JournalLine(TrackedBase):
    """A single debit or credit line of a journal entry."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_line_number"),
        Index("idx_journal_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, AMOUNT_SCALE),
        default=Decimal("0"),
        nullable=False,
    )

    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, AMOUNT_SCALE),
        default=Decimal("0"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.line_number}: "
            f"D{self.debit_amount} C{self.credit_amount}>"
        )
