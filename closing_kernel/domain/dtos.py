"""
DTOs -- Pure domain data transfer objects for periods and accounts.

Responsibility:
    Immutable snapshots of AccountingPeriod and Account state that flow out
    of the kernel services, so domain logic and callers never hold live ORM
    instances across transaction boundaries.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods exist as
    boundary converters and are only invoked from the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from closing_kernel.models.account import Account as AccountModel
    from closing_kernel.models.accounting_period import (
        AccountingPeriod as AccountingPeriodModel,
    )


@dataclass(frozen=True)
class PeriodInfo:
    """
    Pure domain representation of an accounting period.

    Contract:
        Immutable snapshot of period state.  Used to check period status
        without ORM access.

    Non-goals:
        - Does NOT enforce period locks (PeriodService does that).
    """

    id: UUID
    period_code: str
    name: str
    fiscal_year: int
    quarter: int
    start_date: date
    end_date: date
    is_closed: bool
    period_month: int | None = None
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None
    reopened_at: datetime | None = None
    reopened_by_id: UUID | None = None
    reopen_reason: str | None = None
    trial_balance_calculated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period."""
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(cls, model: AccountingPeriodModel) -> PeriodInfo:
        return cls(
            id=model.id,
            period_code=model.period_code,
            name=model.name,
            fiscal_year=model.fiscal_year,
            quarter=model.quarter,
            start_date=model.start_date,
            end_date=model.end_date,
            is_closed=model.is_closed,
            period_month=model.period_month,
            closed_at=model.closed_at,
            closed_by_id=model.closed_by_id,
            reopened_at=model.reopened_at,
            reopened_by_id=model.reopened_by_id,
            reopen_reason=model.reopen_reason,
            trial_balance_calculated_at=model.trial_balance_calculated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "period_code": self.period_code,
            "name": self.name,
            "fiscal_year": self.fiscal_year,
            "quarter": self.quarter,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "is_closed": self.is_closed,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "closed_by_id": str(self.closed_by_id) if self.closed_by_id else None,
        }


@dataclass(frozen=True)
class AccountInfo:
    """
    Pure domain representation of a chart-of-accounts entry.

    Guarantees:
        - Immutable (frozen dataclass).
        - account_type, normal_balance and posting_type are plain strings
          holding the enum values.
    """

    id: UUID
    code: str
    name: str
    account_type: str
    normal_balance: str
    posting_type: str
    is_active: bool
    parent_id: UUID | None = None

    @property
    def is_posting(self) -> bool:
        return self.posting_type == "posting"

    @property
    def is_header(self) -> bool:
        return self.posting_type == "header"

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=_enum_value(model.account_type),
            normal_balance=_enum_value(model.normal_balance),
            posting_type=_enum_value(model.posting_type),
            is_active=model.is_active,
            parent_id=model.parent_id,
        )


def _enum_value(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)


@dataclass(frozen=True)
class LineSpec:
    """
    One requested ledger line.

    Exactly one of debit/credit is expected to be non-zero; LedgerService
    enforces this when the entry is recorded.
    """

    account_code: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None


@dataclass(frozen=True)
class JournalEntryInfo:
    """Immutable snapshot of a journal entry header and its totals."""

    id: UUID
    entry_number: str
    transaction_date: date
    currency: str
    status: str
    total_debit: Decimal
    total_credit: Decimal
    line_count: int
    posted_at: datetime | None = None

    @property
    def is_posted(self) -> bool:
        return self.status == "posted"
