"""Read-only selectors over the ledger and the trial balance snapshots."""

from closing_kernel.selectors.ledger_selector import LedgerSelector
from closing_kernel.selectors.trial_balance_selector import (
    TrialBalanceLine,
    TrialBalanceSelector,
)

__all__ = ["LedgerSelector", "TrialBalanceLine", "TrialBalanceSelector"]
