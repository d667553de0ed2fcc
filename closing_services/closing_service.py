"""
closing_services.closing_service -- façade for UI and reporting callers.

Responsibility:
    The exposed entry points of the closing engine: validate a period,
    close it, read its trial balance, recalculate it (inline or on a worker
    thread), and reopen it.  Every call takes the target period explicitly
    and opens its own unit of work from the session factory.

Architecture position:
    Services -- outermost layer.  Wires configuration, clock and the draft
    counter registry into the command objects.

Failure modes:
    Typed ClosingKernelError subclasses propagate unchanged; see
    PeriodCloser and TrialBalanceRecalculation.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from closing_config import get_active_config
from closing_config.schema import ClosingConfig
from closing_kernel.db.engine import session_scope
from closing_kernel.db.immutability import register_immutability_listeners
from closing_kernel.domain.cancellation import CancellationToken
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.domain.dtos import PeriodInfo
from closing_kernel.domain.readiness import ClosingReadinessReport
from closing_kernel.logging_config import get_logger
from closing_kernel.services.draft_counters import DraftCounterRegistry
from closing_kernel.services.period_service import PeriodService
from closing_kernel.services.period_validator import PeriodValidator
from closing_services._close_types import (
    PeriodCloseResult,
    RecalculationResult,
    RollupRow,
    TrialBalanceView,
)
from closing_services.period_closer import PeriodCloser
from closing_services.period_lock import PeriodCloseLockManager
from closing_services.recalculation import TrialBalanceRecalculation
from closing_services.trial_balance_query import TrialBalanceQueryService

logger = get_logger("services.closing")


class ClosingService:
    """
    Closing engine façade.

    Contract:
        Stateless between calls apart from the worker pool.  Safe to share
        across threads; each call uses its own session.

    Usage:
        with ClosingService(get_session_factory()) as closing:
            report = closing.validate_closing(period_id)
            if report.success:
                closing.close_period(period_id, actor_id, auto_create_next=True)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: ClosingConfig | None = None,
        clock: Clock | None = None,
        registry: DraftCounterRegistry | None = None,
    ):
        register_immutability_listeners()
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._registry = registry or DraftCounterRegistry.from_sources(self._config.draft_sources)
        self._locks = PeriodCloseLockManager(
            session_factory, self._clock, self._config.lock_ttl_seconds
        )
        self._closer = PeriodCloser(
            session_factory, self._config, self._clock, self._registry, self._locks
        )
        self._recalculation = TrialBalanceRecalculation(
            session_factory, self._config, self._clock, self._locks
        )
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = Lock()

    @property
    def config(self) -> ClosingConfig:
        return self._config

    def validate_closing(self, period_id: UUID) -> ClosingReadinessReport:
        with session_scope(self._session_factory) as session:
            return PeriodValidator(
                session,
                self._registry,
                self._config.base_currency,
                self._config.tolerance_for(),
            ).validate(period_id)

    def close_period(
        self,
        period_id: UUID,
        actor_id: UUID,
        auto_create_next: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> PeriodCloseResult:
        return self._closer.close(period_id, actor_id, auto_create_next, cancel_token)

    def get_trial_balance(
        self,
        period_id: UUID,
        search_text: str | None = None,
        account_type: str | None = None,
    ) -> TrialBalanceView:
        with session_scope(self._session_factory) as session:
            return TrialBalanceQueryService(session).get_trial_balance(
                period_id, search_text, account_type
            )

    def get_rollup(self, period_id: UUID) -> list[RollupRow]:
        with session_scope(self._session_factory) as session:
            return TrialBalanceQueryService(session).get_rollup(period_id)

    def recalculate_trial_balance(
        self,
        period_id: UUID,
        actor_id: UUID,
        cancel_token: CancellationToken | None = None,
    ) -> RecalculationResult:
        return self._recalculation.recalculate(period_id, actor_id, cancel_token)

    def submit_recalculation(
        self,
        period_id: UUID,
        actor_id: UUID,
        cancel_token: CancellationToken | None = None,
    ) -> Future[RecalculationResult]:
        """Run ``recalculate_trial_balance`` on a worker thread."""
        ctx = contextvars.copy_context()
        future = self._get_executor().submit(
            ctx.run, self.recalculate_trial_balance, period_id, actor_id, cancel_token
        )
        logger.info("trial_balance_recalculation_submitted", extra={"period_id": str(period_id)})
        return future

    def reopen_period(self, period_id: UUID, actor_id: UUID, reason: str) -> PeriodInfo:
        with session_scope(self._session_factory) as session:
            return PeriodService(session, self._clock).reopen_period(period_id, actor_id, reason)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.recalculation_workers,
                    thread_name_prefix="trial-balance-recalc",
                )
            return self._executor

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> ClosingService:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
