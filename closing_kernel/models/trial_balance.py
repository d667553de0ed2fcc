"""
Module: closing_kernel.models.trial_balance
Responsibility: ORM persistence for trial balance snapshots and the per-period
    close lock row.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one snapshot row per (period, account) (uq_trial_balance_period_account).
    - At most one live lock per period (uq_period_close_lock_period).
    - ending_debit and ending_credit are never both non-zero (BalanceAggregator).

Audit relevance:
    The snapshot of a closed period is the figure set the successor period's
    opening balances are carried forward from.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from closing_kernel.db.base import AMOUNT_SCALE, Base, UUIDString


def _amount_column() -> Mapped[Decimal]:
    return mapped_column(
        Numeric(38, AMOUNT_SCALE),
        default=Decimal("0"),
        nullable=False,
    )


class TrialBalance(Base):
    """One snapshot row of a period's trial balance for a posting account."""

    __tablename__ = "trial_balances"

    __table_args__ = (
        UniqueConstraint("period_id", "account_id", name="uq_trial_balance_period_account"),
        Index("idx_trial_balance_period", "period_id"),
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_periods.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    opening_debit: Mapped[Decimal] = _amount_column()
    opening_credit: Mapped[Decimal] = _amount_column()
    period_debit: Mapped[Decimal] = _amount_column()
    period_credit: Mapped[Decimal] = _amount_column()
    ending_debit: Mapped[Decimal] = _amount_column()
    ending_credit: Mapped[Decimal] = _amount_column()
    ytd_debit: Mapped[Decimal] = _amount_column()
    ytd_credit: Mapped[Decimal] = _amount_column()

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TrialBalance period={self.period_id} account={self.account_id}>"


class PeriodCloseLock(Base):
    """
    Serialization row for closes and recalculations of one period.

    The unique constraint on period_id is the lock: the second insert for
    the same period fails until the holder deletes its row or the row
    expires.
    """

    __tablename__ = "period_close_locks"

    __table_args__ = (
        UniqueConstraint("period_id", name="uq_period_close_lock_period"),
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_periods.id"),
        nullable=False,
    )

    run_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # "close" or "recalculate"
    operation: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    acquired_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    acquired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
