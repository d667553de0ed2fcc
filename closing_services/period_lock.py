"""
closing_services.period_lock -- per-period mutual exclusion for closes.

Responsibility:
    Serialize close and recalculation runs of the same period across
    threads and processes.  Different periods never contend.

Architecture position:
    Services.  Owns its own short transactions: the lock row must be
    committed and visible to other connections before the guarded work
    starts, and must be removed whether that work commits or rolls back.

Invariants enforced:
    - At most one live lock row per period (unique constraint on period_id).
    - A lock older than its TTL is reclaimed by the next acquirer, so a
      crashed holder cannot block a period forever.

Failure modes:
    - PeriodCloseInProgressError: another live run holds the period.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from closing_kernel.db.engine import session_scope
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.exceptions import PeriodCloseInProgressError
from closing_kernel.logging_config import get_logger
from closing_kernel.models.trial_balance import PeriodCloseLock

logger = get_logger("services.period_lock")


class PeriodCloseLockManager:
    """
    Lock rows in ``period_close_locks``.

    Contract:
        ``hold()`` acquires on entry and always releases on exit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        ttl_seconds: int = 900,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)

    def acquire(
        self,
        period_id: UUID,
        period_code: str,
        run_id: UUID,
        actor_id: UUID,
        operation: str,
    ) -> None:
        """
        Raises:
            PeriodCloseInProgressError: The period is locked by a live run.
        """
        now = self._clock.now()
        try:
            with session_scope(self._session_factory) as session:
                reclaimed = session.execute(
                    delete(PeriodCloseLock).where(
                        PeriodCloseLock.period_id == period_id,
                        PeriodCloseLock.expires_at < now,
                    )
                ).rowcount
                if reclaimed:
                    logger.warning(
                        "period_lock_reclaimed",
                        extra={"period_code": period_code},
                    )
                session.add(
                    PeriodCloseLock(
                        period_id=period_id,
                        run_id=run_id,
                        operation=operation,
                        acquired_by_id=actor_id,
                        acquired_at=now,
                        expires_at=now + self._ttl,
                    )
                )
                session.flush()
        except IntegrityError:
            holder = self.holder(period_id)
            logger.warning(
                "period_lock_contended",
                extra={
                    "period_code": period_code,
                    "operation": operation,
                    "holder_run_id": str(holder) if holder else None,
                },
            )
            raise PeriodCloseInProgressError(
                period_code, str(holder) if holder else None
            ) from None

        logger.info(
            "period_lock_acquired",
            extra={"period_code": period_code, "operation": operation},
        )

    def release(self, period_id: UUID, run_id: UUID) -> bool:
        """Remove the lock row held by ``run_id``.  False if it was already gone."""
        with session_scope(self._session_factory) as session:
            removed = session.execute(
                delete(PeriodCloseLock).where(
                    PeriodCloseLock.period_id == period_id,
                    PeriodCloseLock.run_id == run_id,
                )
            ).rowcount
        logger.info("period_lock_released", extra={"removed": bool(removed)})
        return bool(removed)

    def holder(self, period_id: UUID) -> UUID | None:
        """Run id currently holding the period, if any."""
        with session_scope(self._session_factory) as session:
            return session.execute(
                select(PeriodCloseLock.run_id).where(PeriodCloseLock.period_id == period_id)
            ).scalar_one_or_none()

    @contextmanager
    def hold(
        self,
        period_id: UUID,
        period_code: str,
        run_id: UUID,
        actor_id: UUID,
        operation: str,
    ) -> Iterator[None]:
        self.acquire(period_id, period_code, run_id, actor_id, operation)
        try:
            yield
        finally:
            self.release(period_id, run_id)
