"""
PeriodService -- accounting period lifecycle and posting-date validation.

Responsibility:
    Creates periods, resolves them by id, code, date and chronology, flips
    them CLOSED for the Period Closer, reopens them through the audited
    reopen action, and rejects postings into closed periods.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by LedgerService before every posting, by BalanceAggregator to
    walk the period chain, and by PeriodCloser to drive the close.

Invariants enforced:
    - Period date ranges never overlap (``create_period``).
    - No posting into a CLOSED period (``validate_posting_date``).
    - CLOSED -> OPEN only through ``reopen_period`` with a reason.
    - A period reopens only when no later period is CLOSED.
    - Returns frozen ``PeriodInfo`` DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError: No period resolves for the id or date.
    - PeriodAlreadyClosedError: Close attempted on a closed period.
    - PeriodNotClosedError: Reopen attempted on an open period.
    - LaterPeriodClosedError: Reopen attempted while a later period is closed.
    - ClosedPeriodError: Posting date falls in a closed period.
    - PeriodOverlapError: New period date range overlaps with existing.

Audit relevance:
    Creation, close and reopen are state transitions logged with
    period_code, actor_id and timestamps.  Validation failures log at
    WARNING.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.domain.dtos import PeriodInfo
from closing_kernel.domain.period_calendar import (
    Cadence,
    fiscal_month_for,
    fiscal_quarter_for,
    fiscal_year_for,
    successor_range,
)
from closing_kernel.exceptions import (
    ClosedPeriodError,
    LaterPeriodClosedError,
    PeriodAlreadyClosedError,
    PeriodNotClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from closing_kernel.logging_config import get_logger
from closing_kernel.models.accounting_period import AccountingPeriod
from closing_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService[AccountingPeriod]):
    """
    Service for managing the accounting period lifecycle.

    Contract:
        Accepts period ids, codes or dates and returns frozen ``PeriodInfo``
        DTOs.  Lifecycle methods flush within the caller's transaction.

    Guarantees:
        - ``lock_period``, ``mark_closed`` and ``reopen_period`` read the
          period row with ``SELECT ... FOR UPDATE`` where the backend
          supports it; ``validate_posting_date`` reads it ``FOR SHARE``, so
          a posting and a close of the same period serialize.

    Non-goals:
        - Does NOT validate drafts or compute balances (PeriodValidator,
          BalanceAggregator).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        fiscal_year_start_month: int = 1,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._fy_start_month = fiscal_year_start_month

    # -- creation -----------------------------------------------------------

    def create_period(
        self,
        period_code: str,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        fiscal_year: int | None = None,
        quarter: int | None = None,
        period_month: int | None = None,
    ) -> PeriodInfo:
        """
        Create a new OPEN accounting period.

        fiscal_year, quarter and period_month are derived from start_date
        and the fiscal-year start month when not supplied.

        Raises:
            ValueError: If start_date > end_date or period_code is taken.
            PeriodOverlapError: If the date range overlaps an existing period.
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) cannot be after end_date ({end_date})"
            )
        if self._get_period_by_code_orm(period_code) is not None:
            raise ValueError(f"Period code already exists: {period_code}")

        self._validate_no_overlap(period_code, start_date, end_date)

        period = AccountingPeriod(
            period_code=period_code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            fiscal_year=fiscal_year or fiscal_year_for(start_date, self._fy_start_month),
            quarter=quarter or fiscal_quarter_for(start_date, self._fy_start_month),
            period_month=period_month or fiscal_month_for(start_date, self._fy_start_month),
            is_closed=False,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
                "fiscal_year": period.fiscal_year,
            },
        )
        return PeriodInfo.from_model(period)

    def _validate_no_overlap(
        self,
        new_period_code: str,
        start_date: date,
        end_date: date,
    ) -> None:
        # Two ranges overlap if start1 <= end2 AND start2 <= end1
        overlapping = self.session.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.start_date <= end_date,
                AccountingPeriod.end_date >= start_date,
            )
            .order_by(AccountingPeriod.start_date)
            .limit(1)
        ).scalar_one_or_none()

        if overlapping:
            raise PeriodOverlapError(
                new_period_code=new_period_code,
                existing_period_code=overlapping.period_code,
                overlap_start=str(max(start_date, overlapping.start_date)),
                overlap_end=str(min(end_date, overlapping.end_date)),
            )

    def find_or_create_successor(
        self,
        period_id: UUID,
        actor_id: UUID,
        cadence: Cadence | str = Cadence.MONTHLY,
    ) -> tuple[PeriodInfo, bool]:
        """
        The period that follows ``period_id``, creating it OPEN if missing.

        An existing later period (earliest by start date) is reused.
        Otherwise the successor runs from the day after the period's end
        through the end of the next month or quarter.

        Returns:
            (period, created) -- created is False when an existing period
            was reused.
        """
        existing = self.get_next_period(period_id)
        if existing is not None:
            return existing, False

        current = self._require_period(period_id)
        proposed = successor_range(current.end_date, Cadence(cadence), self._fy_start_month)
        created = self.create_period(
            period_code=proposed.period_code,
            name=proposed.name,
            start_date=proposed.start_date,
            end_date=proposed.end_date,
            actor_id=actor_id,
            fiscal_year=proposed.fiscal_year,
            quarter=proposed.quarter,
            period_month=proposed.period_month,
        )
        logger.info(
            "successor_period_created",
            extra={
                "period_code": created.period_code,
                "predecessor_code": current.period_code,
            },
        )
        return created, True

    # -- state transitions --------------------------------------------------

    def lock_period(self, period_id: UUID) -> PeriodInfo:
        """
        Take the period row lock for the rest of the transaction.

        Postings read their covering period ``FOR SHARE``; holding the row
        exclusively blocks new postings into the period until commit.

        Raises:
            PeriodNotFoundError: If the period does not exist.
        """
        period = self._get_period_for_update(period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return PeriodInfo.from_model(period)

    def mark_closed(self, period_id: UUID, actor_id: UUID) -> PeriodInfo:
        """
        Flip a period to CLOSED and stamp closed_at/closed_by_id.

        Raises:
            PeriodNotFoundError: If the period does not exist.
            PeriodAlreadyClosedError: If the period is already closed.
        """
        period = self._get_period_for_update(period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        if period.is_closed:
            raise PeriodAlreadyClosedError(period.period_code)

        period.is_closed = True
        period.closed_at = self._clock.now()
        period.closed_by_id = actor_id
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_closed",
            extra={
                "period_code": period.period_code,
                "actor_id": str(actor_id),
            },
        )
        return PeriodInfo.from_model(period)

    def reopen_period(self, period_id: UUID, actor_id: UUID, reason: str) -> PeriodInfo:
        """
        Reopen a CLOSED period.  Audited: records who, when and why.

        The period's trial balance snapshot is left in place; it is replaced
        by the next close or recalculation.

        Periods reopen newest first: a later CLOSED period carried its
        opening balances from this period's snapshot, so it must be
        reopened before this one.

        Raises:
            ValueError: If reason is blank.
            PeriodNotFoundError: If the period does not exist.
            PeriodNotClosedError: If the period is not closed.
            LaterPeriodClosedError: If a later period is still closed.
        """
        if not reason or not reason.strip():
            raise ValueError("A reason is required to reopen a period")

        period = self._get_period_for_update(period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        if not period.is_closed:
            raise PeriodNotClosedError(period.period_code)

        later_closed = self.session.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.start_date > period.end_date,
                AccountingPeriod.is_closed.is_(True),
            )
            .order_by(AccountingPeriod.start_date)
            .limit(1)
        ).scalar_one_or_none()
        if later_closed is not None:
            raise LaterPeriodClosedError(period.period_code, later_closed.period_code)

        period.is_closed = False
        period.reopened_at = self._clock.now()
        period.reopened_by_id = actor_id
        period.reopen_reason = reason.strip()
        period.updated_by_id = actor_id
        self.session.flush()

        logger.warning(
            "period_reopened",
            extra={
                "period_code": period.period_code,
                "actor_id": str(actor_id),
                "reason": period.reopen_reason,
            },
        )
        return PeriodInfo.from_model(period)

    # -- lookups ------------------------------------------------------------

    def _get_period_orm(self, period_id: UUID) -> AccountingPeriod | None:
        return self.session.get(AccountingPeriod, period_id)

    def _require_period(self, period_id: UUID) -> AccountingPeriod:
        period = self._get_period_orm(period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def _get_period_for_update(self, period_id: UUID) -> AccountingPeriod | None:
        """Get period with row lock for serialized state changes."""
        return self.session.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _get_period_by_code_orm(self, period_code: str) -> AccountingPeriod | None:
        return self.session.execute(
            select(AccountingPeriod).where(AccountingPeriod.period_code == period_code)
        ).scalar_one_or_none()

    def get_period(self, period_id: UUID) -> PeriodInfo:
        """
        Raises:
            PeriodNotFoundError: If no period has this id.
        """
        return PeriodInfo.from_model(self._require_period(period_id))

    def get_period_by_code(self, period_code: str) -> PeriodInfo | None:
        period = self._get_period_by_code_orm(period_code)
        return PeriodInfo.from_model(period) if period else None

    def get_period_for_date(self, check_date: date) -> PeriodInfo | None:
        period = self.session.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.start_date <= check_date,
                AccountingPeriod.end_date >= check_date,
            )
        ).scalar_one_or_none()
        return PeriodInfo.from_model(period) if period else None

    def get_previous_period(self, period_id: UUID) -> PeriodInfo | None:
        """The latest period ending before this one starts."""
        current = self._require_period(period_id)
        period = self.session.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.end_date < current.start_date)
            .order_by(AccountingPeriod.end_date.desc())
            .limit(1)
        ).scalar_one_or_none()
        return PeriodInfo.from_model(period) if period else None

    def get_next_period(self, period_id: UUID) -> PeriodInfo | None:
        """The earliest period starting after this one ends."""
        current = self._require_period(period_id)
        period = self.session.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.start_date > current.end_date)
            .order_by(AccountingPeriod.start_date)
            .limit(1)
        ).scalar_one_or_none()
        return PeriodInfo.from_model(period) if period else None

    def fiscal_year_periods_through(self, period_id: UUID) -> list[PeriodInfo]:
        """Periods of the same fiscal year up to and including this one, oldest first."""
        current = self._require_period(period_id)
        periods = self.session.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.fiscal_year == current.fiscal_year,
                AccountingPeriod.start_date <= current.start_date,
            )
            .order_by(AccountingPeriod.start_date)
        ).scalars().all()
        return [PeriodInfo.from_model(p) for p in periods]

    def list_periods(
        self,
        fiscal_year: int | None = None,
        is_closed: bool | None = None,
        search: str | None = None,
    ) -> list[PeriodInfo]:
        """Periods ordered by start date, optionally filtered."""
        query = select(AccountingPeriod)
        if fiscal_year is not None:
            query = query.where(AccountingPeriod.fiscal_year == fiscal_year)
        if is_closed is not None:
            query = query.where(AccountingPeriod.is_closed == is_closed)
        if search:
            query = query.where(
                or_(
                    AccountingPeriod.period_code.icontains(search, autoescape=True),
                    AccountingPeriod.name.icontains(search, autoescape=True),
                )
            )
        periods = self.session.execute(
            query.order_by(AccountingPeriod.start_date)
        ).scalars().all()
        return [PeriodInfo.from_model(p) for p in periods]

    # -- posting guard ------------------------------------------------------

    def validate_posting_date(self, transaction_date: date) -> PeriodInfo:
        """
        Resolve the period a posting dated ``transaction_date`` lands in.

        The covering row is read ``FOR SHARE`` and refreshed from the
        database, so a close of the same period waits for this transaction
        and a close committed first is seen here.

        Raises:
            PeriodNotFoundError: No period covers the date.
            ClosedPeriodError: The covering period is closed.
        """
        row = self.session.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.start_date <= transaction_date,
                AccountingPeriod.end_date >= transaction_date,
            )
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            logger.warning(
                "posting_date_without_period",
                extra={"transaction_date": str(transaction_date)},
            )
            raise PeriodNotFoundError(f"date {transaction_date}")

        period = PeriodInfo.from_model(row)
        if period.is_closed:
            logger.warning(
                "period_closed_violation",
                extra={
                    "period_code": period.period_code,
                    "transaction_date": str(transaction_date),
                },
            )
            raise ClosedPeriodError(period.period_code, str(transaction_date))
        return period
