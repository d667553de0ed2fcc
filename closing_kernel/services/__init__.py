"""Kernel services: flush-only, the caller owns the transaction."""

from closing_kernel.services.balance_aggregator import BalanceAggregator
from closing_kernel.services.coa_registry import ChartOfAccountsRegistry
from closing_kernel.services.draft_counters import (
    DraftCounter,
    DraftCounterRegistry,
    JournalDraftCounter,
    TableDraftCounter,
)
from closing_kernel.services.ledger_service import LedgerService
from closing_kernel.services.period_service import PeriodService
from closing_kernel.services.period_validator import PeriodValidator
from closing_kernel.services.trial_balance_writer import TrialBalanceWriter

__all__ = [
    "BalanceAggregator",
    "ChartOfAccountsRegistry",
    "DraftCounter",
    "DraftCounterRegistry",
    "JournalDraftCounter",
    "LedgerService",
    "PeriodService",
    "PeriodValidator",
    "TableDraftCounter",
    "TrialBalanceWriter",
]
