"""Transaction-owning closing commands and the closing façade."""

from closing_services._close_types import (
    PeriodCloseResult,
    RecalculationResult,
    RollupRow,
    TrialBalanceStatus,
    TrialBalanceView,
)
from closing_services.closing_service import ClosingService
from closing_services.period_closer import PeriodCloser
from closing_services.period_lock import PeriodCloseLockManager
from closing_services.recalculation import TrialBalanceRecalculation
from closing_services.trial_balance_query import TrialBalanceQueryService

__all__ = [
    "ClosingService",
    "PeriodCloseLockManager",
    "PeriodCloseResult",
    "PeriodCloser",
    "RecalculationResult",
    "RollupRow",
    "TrialBalanceQueryService",
    "TrialBalanceRecalculation",
    "TrialBalanceStatus",
    "TrialBalanceView",
]
