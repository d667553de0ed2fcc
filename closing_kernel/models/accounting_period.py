"""
Module: closing_kernel.models.accounting_period
Responsibility: ORM persistence for accounting periods -- the date ranges that
    partition the ledger and the lock that stops postings once closed.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - period_code is unique (uq_accounting_period_code).
    - start_date <= end_date and ranges never overlap (PeriodService).
    - No posting into a closed period (PeriodService.validate_posting_date).

Audit relevance:
    closed_at/closed_by_id stamp every close; reopened_at/reopened_by_id/
    reopen_reason record the lineage of the explicit reopen action.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from closing_kernel.db.base import TrackedBase, UUIDString


class AccountingPeriod(TrackedBase):
    """
    Accounting period for closing control.

    Contract:
        A period is OPEN while ``is_closed`` is False.  Once closed, no
        ledger line dated inside its range may be posted.  Reopening is an
        explicit audited action that records who, when and why.

    Non-goals:
        - This model does NOT enforce non-overlapping date ranges; that is
          checked by PeriodService at creation time.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        UniqueConstraint("period_code", name="uq_accounting_period_code"),
        Index("idx_accounting_period_dates", "start_date", "end_date"),
        Index("idx_accounting_period_fiscal_year", "fiscal_year"),
    )

    # Period identifier (e.g., "2025-01", "2025-Q1")
    period_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    fiscal_year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    quarter: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Month of the fiscal year the period starts in (1-12)
    period_month: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    # Period boundaries (inclusive)
    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    is_closed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reopened_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reopened_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reopen_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Set whenever a trial balance snapshot is written, even an empty one
    trial_balance_calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<AccountingPeriod {self.period_code}: {state}>"

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period."""
        return self.start_date <= check_date <= self.end_date
