"""
Closing readiness -- the pre-close checklist.

Responsibility:
    Represent the outcome of validating a period for closing: one DraftCheck
    per registered document category plus the ledger balance test.  The
    report is the single artifact the UI renders as a remediation checklist.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.  Built by
    PeriodValidator, carried by PeriodNotReadyError.

Invariants enforced:
    - success is True only when every draft count is zero AND the ledger
      balances within the currency tolerance.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from closing_kernel.domain.balances import format_amount


def is_within_tolerance(total_debit: Decimal, total_credit: Decimal, tolerance: Decimal) -> bool:
    """True when |debit - credit| does not exceed the tolerance."""
    return abs(total_debit - total_credit) <= tolerance


@dataclass(frozen=True)
class DraftCheck:
    """Number of unfinished documents of one category inside the period."""

    category: str
    draft_count: int
    requirement: str

    @property
    def passed(self) -> bool:
        return self.draft_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "draft_count": self.draft_count,
            "requirement": self.requirement,
            "passed": self.passed,
        }


@dataclass(frozen=True)
class ClosingReadinessReport:
    """
    Outcome of PeriodValidator.validate().

    Contract:
        Read-only diagnostics.  Producing a report never changes state, so
        the same ledger always yields an equal report.
    """

    period_id: UUID
    period_code: str
    checks: tuple[DraftCheck, ...]
    total_debit: Decimal
    total_credit: Decimal
    currency: str
    tolerance: Decimal
    is_balanced: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "is_balanced",
            is_within_tolerance(self.total_debit, self.total_credit, self.tolerance),
        )

    @property
    def imbalance_delta(self) -> Decimal:
        """Signed debit minus credit across all posted lines."""
        return self.total_debit - self.total_credit

    @property
    def has_drafts(self) -> bool:
        return any(not check.passed for check in self.checks)

    @property
    def success(self) -> bool:
        return self.is_balanced and not self.has_drafts

    def draft_count(self, category: str) -> int:
        """Draft count for a category; 0 when the category was not checked."""
        for check in self.checks:
            if check.category == category:
                return check.draft_count
        return 0

    def remediation_items(self) -> list[str]:
        """Itemized, human-readable list of what blocks the close."""
        items = [
            f"{check.draft_count} draft {check.category}: {check.requirement}"
            for check in self.checks
            if not check.passed
        ]
        if not self.is_balanced:
            items.append(
                f"ledger out of balance by {self.imbalance_delta} {self.currency} "
                f"(debit {self.total_debit}, credit {self.total_credit}, "
                f"tolerance {self.tolerance})"
            )
        return items

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_id": str(self.period_id),
            "period_code": self.period_code,
            "success": self.success,
            "checks": [check.to_dict() for check in self.checks],
            "is_balanced": self.is_balanced,
            "total_debit": format_amount(self.total_debit),
            "total_credit": format_amount(self.total_credit),
            "imbalance_delta": format_amount(self.imbalance_delta),
            "currency": self.currency,
            "tolerance": format_amount(self.tolerance),
            "remediation": self.remediation_items(),
        }
