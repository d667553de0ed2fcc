"""Pure domain core: balance arithmetic, readiness reports, calendar, DTOs."""

from closing_kernel.domain.balances import (
    BalanceRow,
    BalanceTotals,
    DebitCredit,
    compute_balance_row,
    normalize_position,
    quantize_amount,
)
from closing_kernel.domain.cancellation import CancellationToken
from closing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from closing_kernel.domain.dtos import AccountInfo, PeriodInfo
from closing_kernel.domain.readiness import (
    ClosingReadinessReport,
    DraftCheck,
    is_within_tolerance,
)

__all__ = [
    "AccountInfo",
    "BalanceRow",
    "BalanceTotals",
    "CancellationToken",
    "Clock",
    "ClosingReadinessReport",
    "DebitCredit",
    "DeterministicClock",
    "DraftCheck",
    "PeriodInfo",
    "SystemClock",
    "compute_balance_row",
    "is_within_tolerance",
    "normalize_position",
    "quantize_amount",
]
