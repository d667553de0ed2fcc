"""
closing_services.recalculation -- drift-correcting trial balance recomputation.

Re-runs the BalanceAggregator for a period and replaces its snapshot
without touching period state.  Valid on OPEN and CLOSED periods.  Runs
under the same per-period lock and single-transaction discipline as the
close, so a reader never sees half a snapshot.  An imbalance is reported
on the result rather than raised.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from closing_config.schema import ClosingConfig
from closing_kernel.db.engine import session_scope
from closing_kernel.domain.balances import BalanceTotals, format_amount
from closing_kernel.domain.cancellation import CancellationToken
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.exceptions import ClosingFailedError, ClosingKernelError
from closing_kernel.logging_config import LogContext, get_logger
from closing_kernel.services.balance_aggregator import BalanceAggregator
from closing_kernel.services.period_service import PeriodService
from closing_kernel.services.trial_balance_writer import TrialBalanceWriter
from closing_services._close_types import RecalculationResult
from closing_services.period_lock import PeriodCloseLockManager

logger = get_logger("services.recalculation")


class TrialBalanceRecalculation:
    """Recalculate-trial-balance command."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: ClosingConfig,
        clock: Clock | None = None,
        lock_manager: PeriodCloseLockManager | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock or SystemClock()
        self._locks = lock_manager or PeriodCloseLockManager(
            session_factory, self._clock, config.lock_ttl_seconds
        )
        self._currency = config.base_currency
        self._tolerance = config.tolerance_for(config.base_currency)

    def recalculate(
        self,
        period_id: UUID,
        actor_id: UUID,
        cancel_token: CancellationToken | None = None,
    ) -> RecalculationResult:
        with session_scope(self._session_factory) as session:
            period = PeriodService(session).get_period(period_id)

        run_id = uuid4()
        with LogContext.bind(run_id=run_id, period_code=period.period_code, actor_id=actor_id):
            with self._locks.hold(period.id, period.period_code, run_id, actor_id, "recalculate"):
                try:
                    with session_scope(self._session_factory) as session:
                        started_at = self._clock.now()
                        periods = PeriodService(
                            session, self._clock, self._config.fiscal_year_start_month
                        )
                        rows = BalanceAggregator(session, self._currency, periods).compute(
                            period_id, cancel_token=cancel_token
                        )
                        row_count = TrialBalanceWriter(session, self._clock).replace_snapshot(
                            period_id, rows, calculated_at=started_at
                        )
                        result = RecalculationResult(
                            run_id=run_id,
                            period=periods.get_period(period_id),
                            snapshot_rows=row_count,
                            totals=BalanceTotals.of(rows.values()),
                            currency=self._currency,
                            tolerance=self._tolerance,
                            started_at=started_at,
                            completed_at=self._clock.now(),
                        )
                except ClosingKernelError:
                    raise
                except Exception as exc:
                    logger.error("trial_balance_recalculation_failed", exc_info=True)
                    raise ClosingFailedError(period.period_code, exc) from exc

            log = logger.info if result.is_balanced else logger.warning
            log(
                "trial_balance_recalculated",
                extra={
                    "snapshot_rows": row_count,
                    "is_balanced": result.is_balanced,
                    "imbalance_delta": format_amount(result.imbalance_delta),
                },
            )
        return result
