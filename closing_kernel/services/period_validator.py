"""
PeriodValidator -- pre-close readiness checks.

Responsibility:
    Produces a ClosingReadinessReport for one period: a draft count per
    registered document category plus the balance test over every POSTED
    ledger line dated in the period.

Architecture position:
    Kernel > Services.  Pure read: never adds, flushes or commits.  Called
    by ClosingService.validate_closing and, again, by PeriodCloser inside
    its transaction just before the snapshot write.

Invariants enforced:
    - report.success == (all draft counts are 0) and report.is_balanced.
    - is_balanced == |total_debit - total_credit| <= tolerance.

Failure modes:
    - PeriodNotFoundError: the id does not resolve.
    - PeriodAlreadyClosedError: the period is not OPEN.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from closing_kernel.domain.balances import format_amount
from closing_kernel.domain.readiness import ClosingReadinessReport, DraftCheck
from closing_kernel.exceptions import PeriodAlreadyClosedError
from closing_kernel.logging_config import get_logger
from closing_kernel.selectors.ledger_selector import LedgerSelector
from closing_kernel.services.draft_counters import DraftCounterRegistry
from closing_kernel.services.period_service import PeriodService

logger = get_logger("services.period_validator")


class PeriodValidator:
    """
    Readiness checker for closing a period.

    Contract:
        ``validate(period_id)`` returns a report and has no side effects.
        Failing checks are reported, never raised; only an unknown or
        already-closed period raises.
    """

    def __init__(
        self,
        session: Session,
        registry: DraftCounterRegistry,
        currency: str,
        tolerance: Decimal,
        period_service: PeriodService | None = None,
    ):
        self.session = session
        self._registry = registry
        self._currency = currency
        self._tolerance = tolerance
        self._periods = period_service or PeriodService(session)
        self._ledger = LedgerSelector(session)

    def validate(self, period_id: UUID) -> ClosingReadinessReport:
        period = self._periods.get_period(period_id)
        if period.is_closed:
            raise PeriodAlreadyClosedError(period.period_code)

        checks = []
        for category in self._registry.categories:
            counters = self._registry.counters_for(category)
            count = sum(
                counter.count_drafts_in_range(self.session, period.start_date, period.end_date)
                for counter in counters
            )
            requirement = "; ".join(
                dict.fromkeys(c.description for c in counters if c.description)
            )
            checks.append(DraftCheck(category=category, draft_count=count, requirement=requirement))

        totals = self._ledger.total_posted(period.start_date, period.end_date, self._currency)

        report = ClosingReadinessReport(
            period_id=period.id,
            period_code=period.period_code,
            checks=tuple(checks),
            total_debit=totals.debit,
            total_credit=totals.credit,
            currency=self._currency,
            tolerance=self._tolerance,
        )

        log_extra = {
            "period_code": period.period_code,
            "success": report.success,
            "is_balanced": report.is_balanced,
            "draft_counts": {c.category: c.draft_count for c in checks},
            "total_debit": format_amount(report.total_debit),
            "total_credit": format_amount(report.total_credit),
        }
        if report.success:
            logger.info("period_validation_passed", extra=log_extra)
        else:
            logger.warning("period_validation_failed", extra=log_extra)
        return report
