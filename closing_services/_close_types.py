"""
closing_services._close_types -- result DTOs for close, recalculation and query.

Responsibility:
    Frozen dataclasses returned by the closing façade: the outcome of a
    close run, of a recalculation, and the trial balance view handed to
    reporting consumers.  Each carries a ``to_dict()`` for JSON transport.

Architecture position:
    Services.  These types live in closing_services/ because the command
    objects that produce them live here.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - TrialBalanceView.totals is the column-wise sum of its own rows.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from closing_kernel.domain.balances import BalanceTotals, format_amount
from closing_kernel.domain.dtos import PeriodInfo
from closing_kernel.domain.readiness import ClosingReadinessReport
from closing_kernel.selectors.trial_balance_selector import TrialBalanceLine


@dataclass(frozen=True)
class PeriodCloseResult:
    """Outcome of a successful close."""

    run_id: UUID
    period: PeriodInfo
    report: ClosingReadinessReport
    snapshot_rows: int
    totals: BalanceTotals
    currency: str
    started_at: datetime
    completed_at: datetime
    successor: PeriodInfo | None = None
    successor_created: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "period": self.period.to_dict(),
            "successor": self.successor.to_dict() if self.successor else None,
            "successor_created": self.successor_created,
            "snapshot_rows": self.snapshot_rows,
            "totals": self.totals.to_dict(),
            "currency": self.currency,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class RecalculationResult:
    """Outcome of a recalculation.  Imbalance is reported, not raised."""

    run_id: UUID
    period: PeriodInfo
    snapshot_rows: int
    totals: BalanceTotals
    currency: str
    tolerance: Decimal
    started_at: datetime
    completed_at: datetime

    @property
    def imbalance_delta(self) -> Decimal:
        return self.totals.period_debit - self.totals.period_credit

    @property
    def is_balanced(self) -> bool:
        return abs(self.imbalance_delta) <= self.tolerance

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "period": self.period.to_dict(),
            "snapshot_rows": self.snapshot_rows,
            "totals": self.totals.to_dict(),
            "currency": self.currency,
            "is_balanced": self.is_balanced,
            "imbalance_delta": format_amount(self.imbalance_delta),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
        }


class TrialBalanceStatus(str, Enum):
    """Whether a period has a trial balance snapshot to show."""

    NO_SNAPSHOT = "no_snapshot"  # never closed or recalculated
    EMPTY = "empty"  # snapshot exists with zero rows
    AVAILABLE = "available"


@dataclass(frozen=True)
class TrialBalanceView:
    """A (possibly filtered) trial balance of one period."""

    period: PeriodInfo
    status: TrialBalanceStatus
    rows: tuple[TrialBalanceLine, ...]
    totals: BalanceTotals
    search_text: str | None = None
    account_type: str | None = None

    @property
    def is_balanced(self) -> bool:
        return self.totals.ending_debit == self.totals.ending_credit

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.to_dict(),
            "status": self.status.value,
            "filters": {"search_text": self.search_text, "account_type": self.account_type},
            "rows": [row.to_dict() for row in self.rows],
            "totals": self.totals.to_dict(),
        }


@dataclass(frozen=True)
class RollupRow:
    """Figures of a HEADER account summed over its posting descendants."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    descendant_count: int
    totals: BalanceTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": str(self.account_id),
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "descendant_count": self.descendant_count,
            "totals": self.totals.to_dict(),
        }
