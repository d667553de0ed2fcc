"""
Closing Kernel

Accounting-period closing and trial-balance computation:
- Readiness validation (draft documents, debit/credit balance)
- Multi-horizon balances (opening, period, ending, year-to-date)
- Atomic period close with carry-forward into the successor period
- Idempotent trial balance recalculation
"""

__version__ = "0.1.0"
