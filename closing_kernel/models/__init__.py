"""ORM models for the closing kernel."""

from closing_kernel.models.account import (
    Account,
    AccountType,
    NormalBalance,
    PostingType,
)
from closing_kernel.models.accounting_period import AccountingPeriod
from closing_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from closing_kernel.models.trial_balance import PeriodCloseLock, TrialBalance

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "PostingType",
    "AccountingPeriod",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "TrialBalance",
    "PeriodCloseLock",
]
