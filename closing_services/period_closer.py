"""
closing_services.period_closer -- the close-period command.

Responsibility:
    Drive one period from OPEN to CLOSED: re-validate, aggregate, persist
    the trial balance snapshot, flip the period, and optionally find or
    create its successor.

Architecture position:
    Services -- transaction-owning command object over kernel services
    (PeriodValidator, BalanceAggregator, TrialBalanceWriter, PeriodService).

Invariants enforced:
    - Validation passes before anything is written; a failing report
      raises PeriodNotReadyError and the transaction writes nothing.
    - Snapshot replacement, the CLOSED flip and successor creation commit
      together or not at all (one ``session_scope``).
    - Only one run per period at a time (PeriodCloseLockManager).
    - The period row is held FOR UPDATE from the start of the close
      transaction; postings into the period wait for it, so none lands
      between validation and the CLOSED flip.
    - An already CLOSED period fails fast without recomputing.

Failure modes:
    - PeriodNotFoundError, PeriodAlreadyClosedError, PeriodNotReadyError,
      PeriodCloseInProgressError, ImbalanceDetectedError,
      CloseCancelledError -- propagate unchanged after rollback.
    - ClosingFailedError -- any other exception (store unavailable, driver
      error).  The period is left OPEN and its snapshot untouched.

Audit relevance:
    ``period_close_started`` / ``period_close_completed`` /
    ``period_close_failed`` carry run_id, period_code and actor_id through
    LogContext, so every line of a run can be correlated.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from closing_config.schema import ClosingConfig
from closing_kernel.db.engine import session_scope
from closing_kernel.domain.balances import BalanceTotals
from closing_kernel.domain.cancellation import CancellationToken
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.exceptions import (
    ClosingFailedError,
    ClosingKernelError,
    ImbalanceDetectedError,
    PeriodAlreadyClosedError,
    PeriodNotReadyError,
)
from closing_kernel.logging_config import LogContext, get_logger
from closing_kernel.services.balance_aggregator import BalanceAggregator
from closing_kernel.services.draft_counters import DraftCounterRegistry
from closing_kernel.services.period_service import PeriodService
from closing_kernel.services.period_validator import PeriodValidator
from closing_kernel.services.trial_balance_writer import TrialBalanceWriter
from closing_services._close_types import PeriodCloseResult
from closing_services.period_lock import PeriodCloseLockManager

logger = get_logger("services.period_closer")


class PeriodCloser:
    """
    Close-period command.

    Contract:
        ``close()`` either returns a PeriodCloseResult with the period
        CLOSED and its snapshot committed, or raises with the database
        unchanged.

    Non-goals:
        - Does NOT reopen periods (PeriodService.reopen_period).
        - Does NOT write successor opening rows; the successor's opening
          is read from this period's snapshot when it is aggregated.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: ClosingConfig,
        clock: Clock | None = None,
        registry: DraftCounterRegistry | None = None,
        lock_manager: PeriodCloseLockManager | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock or SystemClock()
        self._registry = registry or DraftCounterRegistry.from_sources(config.draft_sources)
        self._locks = lock_manager or PeriodCloseLockManager(
            session_factory, self._clock, config.lock_ttl_seconds
        )
        self._currency = config.base_currency
        self._tolerance = config.tolerance_for(config.base_currency)

    def close(
        self,
        period_id: UUID,
        actor_id: UUID,
        auto_create_next: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> PeriodCloseResult:
        with session_scope(self._session_factory) as session:
            period = PeriodService(session).get_period(period_id)
        if period.is_closed:
            raise PeriodAlreadyClosedError(period.period_code)

        run_id = uuid4()
        with LogContext.bind(run_id=run_id, period_code=period.period_code, actor_id=actor_id):
            logger.info(
                "period_close_started",
                extra={"auto_create_next": auto_create_next},
            )
            with self._locks.hold(period.id, period.period_code, run_id, actor_id, "close"):
                try:
                    with session_scope(self._session_factory) as session:
                        result = self._close_in_transaction(
                            session, run_id, period_id, actor_id, auto_create_next, cancel_token
                        )
                except ClosingKernelError as exc:
                    logger.warning(
                        "period_close_rejected",
                        extra={"error_code": exc.code},
                    )
                    raise
                except Exception as exc:
                    logger.error("period_close_failed", exc_info=True)
                    raise ClosingFailedError(period.period_code, exc) from exc

            logger.info(
                "period_close_completed",
                extra={
                    "snapshot_rows": result.snapshot_rows,
                    "successor_code": result.successor.period_code if result.successor else None,
                    "successor_created": result.successor_created,
                },
            )
        return result

    def _close_in_transaction(
        self,
        session: Session,
        run_id: UUID,
        period_id: UUID,
        actor_id: UUID,
        auto_create_next: bool,
        cancel_token: CancellationToken | None,
    ) -> PeriodCloseResult:
        started_at = self._clock.now()
        periods = PeriodService(session, self._clock, self._config.fiscal_year_start_month)

        # 0. hold the period row so postings into it wait for this close
        periods.lock_period(period_id)

        # 1. re-validate under the lock
        report = PeriodValidator(
            session, self._registry, self._currency, self._tolerance, periods
        ).validate(period_id)
        if not report.success:
            raise PeriodNotReadyError(report.period_code, report)

        # 2. aggregate, verify, replace snapshot
        rows = BalanceAggregator(session, self._currency, periods).compute(
            period_id, cancel_token=cancel_token
        )
        totals = BalanceTotals.of(rows.values())
        delta = totals.period_debit - totals.period_credit
        if abs(delta) > self._tolerance:
            raise ImbalanceDetectedError(report.period_code, delta, self._currency)

        row_count = TrialBalanceWriter(session, self._clock).replace_snapshot(
            period_id, rows, calculated_at=started_at
        )

        # 3. flip to CLOSED
        closed = periods.mark_closed(period_id, actor_id)

        # 4. successor
        successor, created = None, False
        if auto_create_next:
            successor, created = periods.find_or_create_successor(
                period_id, actor_id, self._config.successor_cadence
            )

        return PeriodCloseResult(
            run_id=run_id,
            period=closed,
            report=report,
            snapshot_rows=row_count,
            totals=totals,
            currency=self._currency,
            started_at=started_at,
            completed_at=self._clock.now(),
            successor=successor,
            successor_created=created,
        )
