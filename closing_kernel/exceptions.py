"""
Typed Exception Hierarchy for the Closing Kernel.

Every error has a TYPED exception class, a machine-readable ``code`` class
attribute, and carries its context as structured attributes (never only a
message string).

    ClosingKernelError (base)
    |
    +-- PeriodError
    |   +-- PeriodNotFoundError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodNotReadyError
    |   +-- PeriodCloseInProgressError
    |   +-- PeriodOverlapError
    |   +-- PeriodNotClosedError
    |   +-- LaterPeriodClosedError
    |   +-- ClosedPeriodError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountNotPostingError
    |   +-- AccountInactiveError
    |   +-- InvalidAccountError
    |   +-- AccountHierarchyError
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- InvalidLineError
    |   +-- EntryNotFoundError
    |   +-- EntryAlreadyPostedError
    |
    +-- ClosingError
    |   +-- ImbalanceDetectedError
    |   +-- ClosingFailedError
    |   +-- CloseCancelledError
    |
    +-- ImmutabilityViolationError
    +-- ConfigurationError

Handling pattern::

    try:
        closer.close(period_id, actor_id)
    except PeriodNotReadyError as e:
        return {"error": e.code, "checklist": e.report.remediation_items()}
    except ClosingFailedError as e:
        log.error("close failed", extra={"cause": repr(e.cause)})
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from closing_kernel.domain.readiness import ClosingReadinessReport


class ClosingKernelError(Exception):
    """
    Base exception for all closing kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CLOSING_KERNEL_ERROR"


# Period-related exceptions


class PeriodError(ClosingKernelError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodNotFoundError(PeriodError):
    """No period resolves for the given id, code, or date."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"Accounting period not found: {period_ref}")


class PeriodAlreadyClosedError(PeriodError):
    """Period is already closed."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Period {period_code} is already closed")


class PeriodNotReadyError(PeriodError):
    """
    Period failed pre-close validation.

    Carries the full readiness report so the caller can render exactly
    which drafts or which imbalance block closing.
    """

    code: str = "PERIOD_NOT_READY"

    def __init__(self, period_code: str, report: "ClosingReadinessReport"):
        self.period_code = period_code
        self.report = report
        items = report.remediation_items()
        super().__init__(
            f"Period {period_code} is not ready to close: "
            + "; ".join(items)
        )


class PeriodCloseInProgressError(PeriodError):
    """Another close or recalculation currently holds the period lock."""

    code: str = "PERIOD_CLOSE_IN_PROGRESS"

    def __init__(self, period_code: str, holder_run_id: str | None = None):
        self.period_code = period_code
        self.holder_run_id = holder_run_id
        super().__init__(
            f"Period {period_code} is locked by run {holder_run_id or 'unknown'}"
        )


class PeriodOverlapError(PeriodError):
    """New period date range overlaps with an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        new_period_code: str,
        existing_period_code: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Period {new_period_code} overlaps with {existing_period_code} "
            f"({overlap_start} to {overlap_end})"
        )


class PeriodNotClosedError(PeriodError):
    """Reopen attempted on a period that is not closed."""

    code: str = "PERIOD_NOT_CLOSED"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Period {period_code} is not closed")


class LaterPeriodClosedError(PeriodError):
    """
    Reopen attempted while a later period is still CLOSED.

    The later period's opening was carried from this period's snapshot;
    reopen the later periods first, newest to oldest.
    """

    code: str = "LATER_PERIOD_CLOSED"

    def __init__(self, period_code: str, later_period_code: str):
        self.period_code = period_code
        self.later_period_code = later_period_code
        super().__init__(
            f"Cannot reopen {period_code} while later period {later_period_code} is closed"
        )


class ClosedPeriodError(PeriodError):
    """Attempted to post into a closed period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_code: str, transaction_date: str):
        self.period_code = period_code
        self.transaction_date = transaction_date
        super().__init__(
            f"Cannot post to closed period {period_code} "
            f"(transaction_date: {transaction_date})"
        )


# Account-related exceptions


class AccountError(ClosingKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


class AccountNotPostingError(AccountError):
    """A HEADER account was used where a POSTING account is required."""

    code: str = "ACCOUNT_NOT_POSTING"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(
            f"Account {account_code} is a header account and cannot hold ledger lines"
        )


class AccountInactiveError(AccountError):
    """Account is not active for posting."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account is inactive: {account_code}")


class InvalidAccountError(AccountError):
    """Account definition violates a chart-of-accounts rule."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Invalid account {account_code}: {reason}")


class AccountHierarchyError(AccountError):
    """Parent reference is invalid or would create a cycle."""

    code: str = "ACCOUNT_HIERARCHY"

    def __init__(self, account_code: str, parent_code: str, reason: str):
        self.account_code = account_code
        self.parent_code = parent_code
        self.reason = reason
        super().__init__(
            f"Cannot attach {account_code} under {parent_code}: {reason}"
        )


# Posting-related exceptions


class PostingError(ClosingKernelError):
    """Base exception for ledger posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, entry_number: str, debits: str, credits: str):
        self.entry_number = entry_number
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Unbalanced entry {entry_number}: debits={debits}, credits={credits}"
        )


class InvalidLineError(PostingError):
    """Ledger line amounts are malformed."""

    code: str = "INVALID_LINE"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Invalid line {line_number}: {reason}")


class EntryNotFoundError(PostingError):
    """Journal entry was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_ref: str):
        self.entry_ref = entry_ref
        super().__init__(f"Journal entry not found: {entry_ref}")


class EntryAlreadyPostedError(PostingError):
    """Journal entry is already posted."""

    code: str = "ENTRY_ALREADY_POSTED"

    def __init__(self, entry_number: str):
        self.entry_number = entry_number
        super().__init__(f"Journal entry {entry_number} is already posted")


# Closing-related exceptions


class ClosingError(ClosingKernelError):
    """Base exception for close and recalculation runs."""

    code: str = "CLOSING_ERROR"


class ImbalanceDetectedError(ClosingError):
    """Debit and credit totals differ beyond the currency tolerance."""

    code: str = "IMBALANCE_DETECTED"

    def __init__(self, period_code: str, delta: Any, currency: str):
        self.period_code = period_code
        self.delta = delta
        self.currency = currency
        super().__init__(
            f"Period {period_code} is out of balance by {delta} {currency}"
        )


class ClosingFailedError(ClosingError):
    """
    Infrastructure failure during the atomic close step.

    The transaction has been rolled back; the period is OPEN and unmodified.
    """

    code: str = "CLOSING_FAILED"

    def __init__(self, period_code: str, cause: BaseException):
        self.period_code = period_code
        self.cause = cause
        super().__init__(
            f"Closing period {period_code} failed and was rolled back: "
            f"{type(cause).__name__}: {cause}"
        )


class CloseCancelledError(ClosingError):
    """A close or recalculation run was cancelled before completion."""

    code: str = "CLOSE_CANCELLED"

    def __init__(self, period_code: str | None = None):
        self.period_code = period_code
        super().__init__(
            f"Run for period {period_code or '?'} was cancelled"
        )


# Persistence guards


class ImmutabilityViolationError(ClosingKernelError):
    """Attempted to modify an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


class ConfigurationError(ClosingKernelError):
    """Closing configuration is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid closing configuration ({source}): {reason}")
